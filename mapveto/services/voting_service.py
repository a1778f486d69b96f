"""Map bans (ABBA) and elimination votes (MULTIPLAYER)."""
from collections import Counter
from uuid import UUID
import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.models.base import ActorType, AuditAction, MapState, SessionFormat, SessionStatus
from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.models.session_map import SessionMap
from mapveto.models.vote import Vote
from mapveto.services.audit_service import AuditService
from mapveto.services.cleanup_service import CleanupService
from mapveto.services.session_service import validate_token
from mapveto.services.turn_oracle import is_your_turn, sort_players_by_creation
from mapveto.utils.datetime_helpers import utc_now
from mapveto.utils.exceptions import (
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    NotYourTurnError,
    TokenError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class VotingService:
    """Applies player actions to a running session."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def _load_for_action(
        self,
        token: str,
        expected_format: SessionFormat,
        check_expiry: bool = True,
    ) -> tuple[VetoSession, SessionPlayer]:
        """Resolve the token and lock the player's session for this action.

        Admins acting for a seat skip the expiry check.

        Raises:
            TokenError: Unknown or expired token
            NotFoundError: Session no longer exists
            ValidationError: Session uses a different format
            InvalidStateError: Session is not IN_PROGRESS
        """
        player = (await self.db.execute(
            select(SessionPlayer).where(SessionPlayer.token == token)
        )).scalars().first()
        if not player:
            raise TokenError(TokenError.INVALID_TOKEN)
        if check_expiry and not validate_token(player):
            raise TokenError(TokenError.TOKEN_EXPIRED)

        session = (await self.db.execute(
            select(VetoSession)
            .where(VetoSession.session_id == player.session_id)
            .with_for_update()
        )).scalar_one_or_none()
        if not session:
            raise NotFoundError("Session", player.session_id)

        if session.format != expected_format.value:
            raise ValidationError(
                "format",
                f"Session uses {session.format} format, not {expected_format.value}",
            )
        if session.status != SessionStatus.IN_PROGRESS.value:
            action = "ban maps" if expected_format == SessionFormat.ABBA else "vote"
            raise InvalidStateError(session.status, [SessionStatus.IN_PROGRESS.value], action)

        return session, player

    async def _get_target_map(self, session: VetoSession, session_map_id: UUID) -> SessionMap:
        session_map = (await self.db.execute(
            select(SessionMap).where(
                SessionMap.session_map_id == session_map_id,
                SessionMap.session_id == session.session_id,
            )
        )).scalar_one_or_none()
        if not session_map:
            raise NotFoundError("Map", session_map_id)
        if session_map.state != MapState.AVAILABLE.value:
            raise ValidationError(
                "session_map_id",
                f"Map \"{session_map.name}\" is no longer available",
            )
        return session_map

    async def _get_players(self, session_id: UUID) -> list[SessionPlayer]:
        result = await self.db.execute(
            select(SessionPlayer).where(SessionPlayer.session_id == session_id)
        )
        return sort_players_by_creation(result.scalars().all())

    async def _get_available_maps(self, session_id: UUID) -> list[SessionMap]:
        result = await self.db.execute(
            select(SessionMap)
            .where(
                SessionMap.session_id == session_id,
                SessionMap.state == MapState.AVAILABLE.value,
            )
            .order_by(SessionMap.position)
        )
        return list(result.scalars().all())

    async def ban_map(self, token: str, session_map_id: UUID) -> VetoSession:
        """Ban a map on the player's ABBA turn.

        Banning the second-to-last map declares the remaining one the winner.

        Raises:
            TokenError, NotFoundError, ValidationError, InvalidStateError
            NotYourTurnError: Player acted out of turn
        """
        try:
            session, player = await self._load_for_action(token, SessionFormat.ABBA)

            players = await self._get_players(session.session_id)
            if not is_your_turn(session, player, players):
                raise NotYourTurnError(player.player_id, session.current_turn)

            session_map = await self._get_target_map(session, session_map_id)

            now = utc_now()
            session_map.state = MapState.BANNED.value
            session_map.banned_by_player_id = player.player_id
            session_map.banned_at_turn = session.current_turn
            session_map.banned_at_round = session.current_round

            await self.audit.record(
                session.session_id,
                AuditAction.MAP_BANNED,
                ActorType.PLAYER,
                actor_id=str(player.player_id),
                details={
                    "map_id": str(session_map.session_map_id),
                    "map_name": session_map.name,
                    "team_name": player.team_name,
                    "turn": session.current_turn,
                    "round": session.current_round,
                },
            )

            session.current_turn += 1
            session.timer_started_at = now
            session.updated_at = now
            await self.db.flush()

            remaining = await self._get_available_maps(session.session_id)
            if len(remaining) == 1:
                await self._declare_winner(session, remaining[0])

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"{player.team_name} banned {session_map.name} in session {session.session_id} "
            f"(turn {session_map.banned_at_turn})"
        )
        return session

    async def submit_vote(
        self,
        token: str,
        session_map_id: UUID,
        submitted_by_admin: bool = False,
    ) -> VetoSession:
        """Cast a player's elimination vote for the current MULTIPLAYER round.

        The round resolves as soon as every player has voted.

        Raises:
            TokenError, NotFoundError, ValidationError, InvalidStateError
            DuplicateError: Player already voted this round
        """
        try:
            session, player = await self._load_for_action(
                token, SessionFormat.MULTIPLAYER, check_expiry=not submitted_by_admin
            )

            if player.has_voted_this_round:
                raise DuplicateError(
                    "round",
                    session.current_round,
                    f"Already voted in round {session.current_round}",
                )

            session_map = await self._get_target_map(session, session_map_id)

            now = utc_now()
            self.db.add(Vote(
                vote_id=uuid.uuid4(),
                session_id=session.session_id,
                round=session.current_round,
                player_id=player.player_id,
                session_map_id=session_map.session_map_id,
                submitted_at=now,
                submitted_by_admin=submitted_by_admin,
            ))
            player.has_voted_this_round = True
            session.updated_at = now

            await self.audit.record(
                session.session_id,
                AuditAction.VOTE_SUBMITTED,
                ActorType.ADMIN if submitted_by_admin else ActorType.PLAYER,
                actor_id=str(player.player_id),
                details={
                    "map_id": str(session_map.session_map_id),
                    "map_name": session_map.name,
                    "team_name": player.team_name,
                    "round": session.current_round,
                },
            )
            await self.db.flush()

            players = await self._get_players(session.session_id)
            if all(p.has_voted_this_round for p in players):
                await self._resolve_round(session, players)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"{player.team_name} voted in round {session.current_round} "
            f"of session {session.session_id}"
        )
        return session

    async def submit_vote_for_player(
        self,
        session_id: UUID,
        player_id: UUID,
        session_map_id: UUID,
    ) -> VetoSession:
        """Cast a vote on behalf of a seat, e.g. for a player who lost their connection.

        Raises:
            NotFoundError: No such player in this session
            plus everything ``submit_vote`` raises
        """
        player = (await self.db.execute(
            select(SessionPlayer).where(
                SessionPlayer.player_id == player_id,
                SessionPlayer.session_id == session_id,
            )
        )).scalar_one_or_none()
        if not player:
            raise NotFoundError("Player", player_id)

        return await self.submit_vote(player.token, session_map_id, submitted_by_admin=True)

    async def _resolve_round(self, session: VetoSession, players: list[SessionPlayer]) -> None:
        """Eliminate voted maps and advance to the next round.

        Every map that received a vote is banned. If that would empty the
        pool, only the most voted maps are banned, and if those still cover
        the pool the earliest map in pool order survives.
        """
        round_number = session.current_round
        available = await self._get_available_maps(session.session_id)

        votes = (await self.db.execute(
            select(Vote).where(
                Vote.session_id == session.session_id,
                Vote.round == round_number,
            )
        )).scalars().all()
        tally = Counter(vote.session_map_id for vote in votes)

        to_ban = [m for m in available if tally[m.session_map_id] > 0]
        if len(to_ban) == len(available):
            top_count = max(tally.values())
            to_ban = [m for m in available if tally[m.session_map_id] == top_count]
            if len(to_ban) == len(available):
                to_ban = available[1:]

        for session_map in available:
            session_map.vote_count = tally[session_map.session_map_id]
        for session_map in to_ban:
            session_map.state = MapState.BANNED.value
            session_map.banned_at_turn = session.current_turn
            session_map.banned_at_round = round_number

        await self.audit.record(
            session.session_id,
            AuditAction.ROUND_RESOLVED,
            ActorType.SYSTEM,
            details={
                "round": round_number,
                "reason": f"Eliminated {', '.join(m.name for m in to_ban)}",
            },
        )

        for player in players:
            player.has_voted_this_round = False

        now = utc_now()
        session.current_round += 1
        session.current_turn += 1
        session.timer_started_at = now
        await self.db.flush()

        logger.info(
            f"Resolved round {round_number} of session {session.session_id}: "
            f"banned {len(to_ban)} of {len(available)} maps"
        )

        banned_ids = {m.session_map_id for m in to_ban}
        remaining = [m for m in available if m.session_map_id not in banned_ids]
        if len(remaining) == 1:
            await self._declare_winner(session, remaining[0])

    async def _declare_winner(self, session: VetoSession, winner: SessionMap) -> None:
        """Complete the session with ``winner`` as its map."""
        now = utc_now()
        winner.state = MapState.WINNER.value
        session.status = SessionStatus.COMPLETE.value
        session.winner_map_id = winner.session_map_id
        session.completed_at = now
        session.timer_started_at = None
        session.timer_paused_at = None
        session.updated_at = now

        await CleanupService(self.db).clear_session_ip_addresses(session.session_id, commit=False)
        await self.audit.record(
            session.session_id,
            AuditAction.WINNER_DECLARED,
            ActorType.SYSTEM,
            details={"map_id": str(winner.session_map_id), "map_name": winner.name},
        )
        await self.db.flush()

        logger.info(f"Session {session.session_id} complete, winner {winner.name}")
