"""Cleanup service for session maintenance tasks."""
import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.models.base import ActorType, AuditAction, SessionStatus
from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.services.audit_service import AuditService
from mapveto.utils.datetime_helpers import utc_now

logger = logging.getLogger(__name__)

EXPIRABLE_STATUSES = (SessionStatus.DRAFT.value, SessionStatus.WAITING.value)
TERMINAL_STATUSES = (SessionStatus.COMPLETE.value, SessionStatus.EXPIRED.value)


class CleanupService:
    """Service for periodic session cleanup.

    Expiry is driven from here rather than by the session engine. Sessions
    that never started are expired once ``expires_at`` passes, and player IP
    addresses are scrubbed whenever a session reaches a terminal state.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def clear_session_ip_addresses(self, session_id: UUID, commit: bool = True) -> int:
        """Remove stored IP addresses for every player in a session.

        Args:
            session_id: Session whose players should be scrubbed
            commit: Commit when done; pass False inside a caller's transaction

        Returns:
            int: Number of players whose IP address was cleared
        """
        players = (await self.db.execute(
            select(SessionPlayer).where(
                SessionPlayer.session_id == session_id,
                SessionPlayer.ip_address.is_not(None),
            )
        )).scalars().all()
        for player in players:
            player.ip_address = None
        cleared = len(players)
        await self.db.flush()

        if commit:
            await self.db.commit()

        if cleared:
            logger.debug(f"Cleared {cleared} IP address(es) for session {session_id}")
        return cleared

    async def expire_stale_sessions(self, now: datetime | None = None) -> dict[str, int]:
        """Expire DRAFT and WAITING sessions whose ``expires_at`` has passed.

        Returns:
            dict: ``expired_count`` and ``ips_cleared_count``
        """
        now = now or utc_now()
        audit = AuditService(self.db)

        try:
            stale_sessions = (await self.db.execute(
                select(VetoSession)
                .where(
                    VetoSession.status.in_(EXPIRABLE_STATUSES),
                    VetoSession.expires_at < now,
                )
                .with_for_update()
            )).scalars().all()

            ips_cleared = 0
            for session in stale_sessions:
                previous_status = session.status
                session.status = SessionStatus.EXPIRED.value
                session.updated_at = now
                ips_cleared += await self.clear_session_ip_addresses(session.session_id, commit=False)
                await audit.record(
                    session.session_id,
                    AuditAction.SESSION_EXPIRED,
                    ActorType.SYSTEM,
                    details={"reason": f"Expired from {previous_status}"},
                )

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if stale_sessions:
            logger.info(
                f"Expired {len(stale_sessions)} stale session(s), "
                f"cleared {ips_cleared} IP address(es)"
            )
        else:
            logger.debug("No stale sessions to expire")

        return {"expired_count": len(stale_sessions), "ips_cleared_count": ips_cleared}

    async def clear_completed_session_ips(self) -> dict[str, int]:
        """Scrub IP addresses left behind on COMPLETE or EXPIRED sessions.

        Returns:
            dict: ``sessions_processed`` and ``ips_cleared_count``
        """
        try:
            session_ids = (await self.db.execute(
                select(SessionPlayer.session_id)
                .join(VetoSession, VetoSession.session_id == SessionPlayer.session_id)
                .where(
                    VetoSession.status.in_(TERMINAL_STATUSES),
                    SessionPlayer.ip_address.is_not(None),
                )
                .distinct()
            )).scalars().all()

            ips_cleared = 0
            for session_id in session_ids:
                ips_cleared += await self.clear_session_ip_addresses(session_id, commit=False)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if ips_cleared:
            logger.info(f"Cleared {ips_cleared} IP address(es) from {len(session_ids)} finished session(s)")

        return {"sessions_processed": len(session_ids), "ips_cleared_count": ips_cleared}

    async def run_all_cleanup_tasks(self) -> dict[str, int]:
        """Run every session cleanup task and merge their results."""
        logger.info("Starting session cleanup tasks")

        results = {}
        expired = await self.expire_stale_sessions()
        results["expired_sessions"] = expired["expired_count"]
        scrubbed = await self.clear_completed_session_ips()
        results["ips_cleared"] = expired["ips_cleared_count"] + scrubbed["ips_cleared_count"]

        logger.info(f"Session cleanup completed: {results}")
        return results
