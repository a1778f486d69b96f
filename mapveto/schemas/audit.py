"""Audit log schemas."""
from typing import Optional, List
from uuid import UUID

from mapveto.schemas.base import BaseSchema, UTCDateTime


class AuditLogResponse(BaseSchema):
    log_id: UUID
    session_id: UUID
    action: str
    actor_type: str
    actor_id: Optional[str]
    details: dict
    timestamp: UTCDateTime


class AuditLogListResponse(BaseSchema):
    logs: List[AuditLogResponse]
