"""Ordered, atomic deletion of a session and everything that hangs off it."""
import logging
from dataclasses import dataclass, asdict
from uuid import UUID

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.models.session_map import SessionMap
from mapveto.models.vote import Vote
from mapveto.models.audit_log import AuditLog
from mapveto.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class CascadeDeleteCounts:
    """Rows removed per entity kind."""
    votes: int = 0
    players: int = 0
    maps: int = 0
    audit_logs: int = 0
    session: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class CascadeDeleteService:
    """Deletes a session with its votes, players, maps and (optionally) audit logs.

    Order matters for referential integrity:
    1. votes (reference session players and session maps)
    2. session players
    3. session maps
    4. the session row
    5. audit logs, unless preserved for the historical record
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def delete_session_with_cascade(
        self,
        session_id: UUID,
        preserve_audit_logs: bool = False,
        commit: bool = True,
    ) -> CascadeDeleteCounts:
        """Delete a session and all dependent records.

        Args:
            session_id: Session to delete
            preserve_audit_logs: Leave audit entries in place (reported as 0)
            commit: Commit when done. Pass False to run inside a caller's
                transaction; the caller then owns commit/rollback.

        Returns:
            CascadeDeleteCounts: Exact number of rows removed per kind

        Raises:
            NotFoundError: If the session does not exist
        """
        try:
            session = (await self.db.execute(
                select(VetoSession).where(VetoSession.session_id == session_id).with_for_update()
            )).scalar_one_or_none()
            if not session:
                raise NotFoundError("Session", session_id)

            # Collect every dependent id before deleting anything
            vote_ids = await self._collect_ids(Vote.vote_id, Vote.session_id, session_id)
            player_ids = await self._collect_ids(
                SessionPlayer.player_id, SessionPlayer.session_id, session_id
            )
            map_ids = await self._collect_ids(
                SessionMap.session_map_id, SessionMap.session_id, session_id
            )
            log_ids = [] if preserve_audit_logs else await self._collect_ids(
                AuditLog.log_id, AuditLog.session_id, session_id
            )

            if vote_ids:
                await self.db.execute(delete(Vote).where(Vote.vote_id.in_(vote_ids)))
            if player_ids:
                await self.db.execute(
                    delete(SessionPlayer).where(SessionPlayer.player_id.in_(player_ids))
                )
            if map_ids:
                await self.db.execute(
                    delete(SessionMap).where(SessionMap.session_map_id.in_(map_ids))
                )
            await self.db.delete(session)
            await self.db.flush()
            if log_ids:
                await self.db.execute(delete(AuditLog).where(AuditLog.log_id.in_(log_ids)))

            counts = CascadeDeleteCounts(
                votes=len(vote_ids),
                players=len(player_ids),
                maps=len(map_ids),
                audit_logs=len(log_ids),
                session=1,
            )

            if commit:
                await self.db.commit()
        except Exception:
            if commit:
                await self.db.rollback()
            raise

        logger.info(f"Cascade deleted session {session_id}: {counts.as_dict()}")
        return counts

    async def _collect_ids(self, id_column, session_column, session_id: UUID) -> list[UUID]:
        result = await self.db.execute(select(id_column).where(session_column == session_id))
        return list(result.scalars().all())
