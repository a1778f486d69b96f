"""Audit logging for session events.

``record`` adds the entry to the caller's transaction without committing, so
an audit row is persisted only if the mutation that produced it succeeds.
"""
import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.config import get_settings
from mapveto.models.audit_log import AuditLog
from mapveto.models.base import ActorType, AuditAction
from mapveto.utils.datetime_helpers import utc_now

logger = logging.getLogger(__name__)


class AuditService:
    """Append-only audit sink keyed by session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()

    async def record(
        self,
        session_id: UUID,
        action: AuditAction,
        actor_type: ActorType,
        actor_id: str | None = None,
        details: dict | None = None,
    ) -> AuditLog:
        """Append an audit entry within the current transaction.

        Returns:
            AuditLog: The pending entry (flushed, so ``log_id`` is populated)
        """
        entry = AuditLog(
            session_id=session_id,
            action=AuditAction(action).value,
            actor_type=ActorType(actor_type).value,
            actor_id=str(actor_id) if actor_id is not None else None,
            details={key: value for key, value in (details or {}).items() if value is not None},
            timestamp=utc_now(),
        )
        self.db.add(entry)
        await self.db.flush()

        logger.debug(f"Audit {entry.action} recorded for session {session_id}")
        return entry

    async def get_session_audit_log(
        self,
        session_id: UUID,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[AuditLog]:
        """Get audit entries for a session, newest first.

        Works for deleted sessions too, since entries only hold a soft reference.
        """
        limit = self._clamp_limit(limit)
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.session_id == session_id)
            .order_by(AuditLog.timestamp.desc(), AuditLog.log_id)
            .offset(max(0, offset))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_recent_logs(self, session_id: UUID, limit: int | None = None) -> list[AuditLog]:
        """Get the most recent audit entries for a session (capped)."""
        return await self.get_session_audit_log(session_id, limit=limit)

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.settings.audit_log_default_limit
        return max(1, min(limit, self.settings.audit_log_max_limit))
