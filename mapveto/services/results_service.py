"""Read-only results view for completed sessions."""
import logging
from dataclasses import dataclass, field
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.models.base import MapState, SessionStatus
from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.models.session_map import SessionMap
from mapveto.utils.datetime_helpers import ensure_utc, utc_now

logger = logging.getLogger(__name__)

UNKNOWN_TEAM = "Unknown"


@dataclass
class BanHistoryEntry:
    order: int
    team_name: str
    map_name: str
    map_image: str


@dataclass
class SessionResults:
    teams: list[str]
    winner_map: SessionMap | None
    ban_history: list[BanHistoryEntry]
    maps: list[SessionMap] = field(default_factory=list)


@dataclass
class ResultsLookup:
    """Outcome of a results query: either ``results`` or an ``error`` code."""
    status: str
    session: VetoSession | None = None
    results: SessionResults | None = None
    error: str | None = None

    @classmethod
    def fail(cls, error: str) -> "ResultsLookup":
        return cls(status="error", error=error)


def build_results(
    players: Sequence[SessionPlayer],
    maps: Sequence[SessionMap],
) -> SessionResults:
    """Project the winner, team roster and ordered ban history.

    Callers are responsible for checking the session is COMPLETE.
    """
    teams = list(dict.fromkeys(p.team_name for p in players))
    players_by_id = {p.player_id: p for p in players}
    winner_map = next((m for m in maps if m.state == MapState.WINNER.value), None)

    banned = [
        m for m in maps
        if m.state == MapState.BANNED.value and m.banned_by_player_id is not None
    ]
    banned.sort(key=lambda m: (
        m.banned_at_turn if m.banned_at_turn is not None else 0,
        m.position,
        str(m.session_map_id),
    ))

    ban_history = []
    for index, session_map in enumerate(banned, start=1):
        banned_by = players_by_id.get(session_map.banned_by_player_id)
        ban_history.append(BanHistoryEntry(
            order=index,
            team_name=banned_by.team_name if banned_by else UNKNOWN_TEAM,
            map_name=session_map.name,
            map_image=session_map.image_url,
        ))

    return SessionResults(
        teams=teams,
        winner_map=winner_map,
        ban_history=ban_history,
        maps=list(maps),
    )


class ResultsService:
    """Loads sessions and projects their results."""

    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_NOT_COMPLETE = "SESSION_NOT_COMPLETE"

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_session_results(self, session_id: UUID) -> ResultsLookup:
        """Public results for a session.

        Results are shareable once a session completes; in-progress sessions
        report ``SESSION_NOT_COMPLETE``.
        """
        session = (await self.db.execute(
            select(VetoSession).where(VetoSession.session_id == session_id)
        )).scalar_one_or_none()
        return await self._project(session)

    async def get_session_results_by_token(self, token: str) -> ResultsLookup:
        """Results for the session a player token belongs to."""
        player = (await self.db.execute(
            select(SessionPlayer).where(SessionPlayer.token == token)
        )).scalars().first()
        if not player:
            return ResultsLookup.fail(self.INVALID_TOKEN)
        if ensure_utc(player.token_expires_at) < utc_now():
            return ResultsLookup.fail(self.TOKEN_EXPIRED)

        session = (await self.db.execute(
            select(VetoSession).where(VetoSession.session_id == player.session_id)
        )).scalar_one_or_none()
        return await self._project(session)

    async def _project(self, session: VetoSession | None) -> ResultsLookup:
        if not session:
            return ResultsLookup.fail(self.SESSION_NOT_FOUND)
        if session.status != SessionStatus.COMPLETE.value:
            return ResultsLookup.fail(self.SESSION_NOT_COMPLETE)

        players = (await self.db.execute(
            select(SessionPlayer).where(SessionPlayer.session_id == session.session_id)
        )).scalars().all()
        maps = (await self.db.execute(
            select(SessionMap)
            .where(SessionMap.session_id == session.session_id)
            .order_by(SessionMap.position)
        )).scalars().all()

        return ResultsLookup(
            status="valid",
            session=session,
            results=build_results(players, maps),
        )
