"""Session audit log model."""
from sqlalchemy import Column, String, DateTime, JSON, Index
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column


class AuditLog(Base):
    """Append-only record of a session event.

    ``session_id`` deliberately carries no foreign key so history outlives
    the session it describes.
    """
    __tablename__ = "audit_logs"

    log_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    session_id = get_uuid_column(nullable=False)
    action = Column(String(50), nullable=False)
    actor_type = Column(String(20), nullable=False)  # ADMIN, PLAYER, SYSTEM
    actor_id = Column(String(64), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        Index("ix_audit_logs_session_id_timestamp", "session_id", "timestamp"),
        Index("ix_audit_logs_timestamp", "timestamp"),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.log_id}, session={self.session_id}, action={self.action})>"
