"""Session engine: lifecycle, player seats and map pool snapshots."""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional
from uuid import UUID
import logging
import uuid

from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from mapveto.config import get_settings
from mapveto.models.base import (
    ActorType,
    AuditAction,
    MapState,
    SessionFormat,
    SessionStatus,
    ACTIVE_SESSION_STATUSES,
)
from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.models.session_map import SessionMap
from mapveto.services.audit_service import AuditService
from mapveto.services.cascade_delete_service import CascadeDeleteService, CascadeDeleteCounts
from mapveto.services.cleanup_service import CleanupService
from mapveto.services.registry_service import RegistryService
from mapveto.services.turn_oracle import is_your_turn, sort_players_by_creation
from mapveto.utils.datetime_helpers import ensure_utc, utc_now
from mapveto.utils.exceptions import (
    CapacityError,
    CollisionError,
    DuplicateError,
    InvalidStateError,
    NotFoundError,
    TokenError,
    ValidationError,
)
from mapveto.utils.tokens import generate_player_token, mask_token

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = (SessionStatus.DRAFT, SessionStatus.WAITING)


@dataclass
class SessionDetails:
    """A session with its players (creation order) and maps (pool order)."""
    session: VetoSession
    players: list[SessionPlayer]
    maps: list[SessionMap]


@dataclass
class TokenSessionView:
    """What a player sees when opening their token link.

    ``status`` is ``valid`` or ``error``; on error only ``error`` is set.
    """
    status: str
    error: Optional[str] = None
    session: Optional[VetoSession] = None
    player: Optional[SessionPlayer] = None
    other_players: list[SessionPlayer] = field(default_factory=list)
    maps: list[SessionMap] = field(default_factory=list)
    is_your_turn: bool = False


def validate_token(player: SessionPlayer, now: datetime | None = None) -> bool:
    """Return True while the player's token has not expired. Pure."""
    now = now or utc_now()
    return ensure_utc(player.token_expires_at) >= now


class SessionService:
    """Service for managing veto sessions."""

    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.audit = AuditService(db)
        self.registry = RegistryService(db)

    # ===== Validation helpers =====

    def _validate_name(self, value: str | None, field_name: str, entity: str) -> str:
        """Trim a name and check it is 1..max_name_length characters."""
        trimmed = (value or "").strip()
        if not trimmed:
            raise ValidationError(field_name, f"{entity} name cannot be empty")
        if len(trimmed) > self.settings.max_name_length:
            raise ValidationError(
                field_name,
                f"{entity} name cannot exceed {self.settings.max_name_length} characters",
            )
        return trimmed

    @staticmethod
    def _validate_range(value, minimum: int, maximum: int, field_name: str, label: str, unit: str = "") -> int:
        suffix = f" {unit}" if unit else ""
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(field_name, f"{label} must be a whole number")
        if value < minimum or value > maximum:
            raise ValidationError(
                field_name,
                f"{label} must be between {minimum} and {maximum}{suffix}, got {value}",
            )
        return value

    def _validate_turn_timer(self, value: int) -> int:
        return self._validate_range(
            value,
            self.settings.min_turn_timer_seconds,
            self.settings.max_turn_timer_seconds,
            "turn_timer_seconds",
            "Turn timer",
            "seconds",
        )

    @staticmethod
    def _require_status(session: VetoSession, allowed: Iterable[SessionStatus], operation: str) -> None:
        allowed = tuple(allowed)
        if session.status not in {status.value for status in allowed}:
            raise InvalidStateError(session.status, [status.value for status in allowed], operation)

    @staticmethod
    def _parse_map_id(map_id) -> UUID:
        """Accept UUIDs or their string forms."""
        if isinstance(map_id, UUID):
            return map_id
        try:
            return UUID(str(map_id))
        except ValueError:
            raise ValidationError("map_ids", f"Invalid map id: {map_id}")

    # ===== Loaders =====

    async def _get_session_for_update(self, session_id: UUID) -> VetoSession:
        """Load a session and lock its row for the rest of the transaction."""
        result = await self.db.execute(
            select(VetoSession).where(VetoSession.session_id == session_id).with_for_update()
        )
        session = result.scalar_one_or_none()
        if not session:
            raise NotFoundError("Session", session_id)
        return session

    async def _get_players(self, session_id: UUID) -> list[SessionPlayer]:
        result = await self.db.execute(
            select(SessionPlayer).where(SessionPlayer.session_id == session_id)
        )
        return sort_players_by_creation(result.scalars().all())

    async def _get_maps(self, session_id: UUID) -> list[SessionMap]:
        result = await self.db.execute(
            select(SessionMap)
            .where(SessionMap.session_id == session_id)
            .order_by(SessionMap.position)
        )
        return list(result.scalars().all())

    async def _get_player_by_token(self, token: str) -> SessionPlayer | None:
        result = await self.db.execute(select(SessionPlayer).where(SessionPlayer.token == token))
        return result.scalars().first()

    # ===== Mutations =====

    async def create_session(
        self,
        match_name: str,
        format: SessionFormat | str,
        player_count: int,
        created_by: UUID,
        turn_timer_seconds: int | None = None,
        map_pool_size: int | None = None,
    ) -> VetoSession:
        """Create a new session in DRAFT status.

        The session expires ``session_expiry_days`` after creation unless it
        reaches a terminal state first. Players and maps are assigned
        separately.

        Raises:
            ValidationError: If any field is malformed or out of range
            NotFoundError: If ``created_by`` is not a known admin
        """
        try:
            trimmed_name = self._validate_name(match_name, "match_name", "Match")
            try:
                session_format = SessionFormat(format)
            except ValueError:
                raise ValidationError("format", f"Unknown session format: {format}")

            self._validate_range(
                player_count,
                self.settings.min_player_count,
                self.settings.max_player_count,
                "player_count",
                "Player count",
            )
            if turn_timer_seconds is None:
                turn_timer_seconds = self.settings.default_turn_timer_seconds
            self._validate_turn_timer(turn_timer_seconds)
            if map_pool_size is None:
                map_pool_size = self.settings.default_map_pool_size
            self._validate_range(
                map_pool_size,
                self.settings.min_map_pool_size,
                self.settings.max_map_pool_size,
                "map_pool_size",
                "Map pool size",
            )

            admin = await self.registry.resolve_admin(created_by)
            if not admin:
                raise NotFoundError("Admin", created_by)

            now = utc_now()
            session = VetoSession(
                session_id=uuid.uuid4(),
                match_name=trimmed_name,
                format=session_format.value,
                status=SessionStatus.DRAFT.value,
                turn_timer_seconds=turn_timer_seconds,
                map_pool_size=map_pool_size,
                player_count=player_count,
                current_turn=0,
                current_round=1,
                created_by=admin.admin_id,
                created_at=now,
                updated_at=now,
                expires_at=now + timedelta(days=self.settings.session_expiry_days),
            )
            self.db.add(session)
            await self.db.flush()

            await self.audit.record(
                session.session_id,
                AuditAction.SESSION_CREATED,
                ActorType.ADMIN,
                actor_id=str(admin.admin_id),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Created {session.format} session {session.session_id} "
            f"({session.player_count} players, pool of {session.map_pool_size})"
        )
        return session

    async def update_session(
        self,
        session_id: UUID,
        match_name: str | None = None,
        turn_timer_seconds: int | None = None,
    ) -> VetoSession:
        """Update session configuration. Only allowed in DRAFT or WAITING.

        Raises:
            NotFoundError, InvalidStateError, ValidationError
        """
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, EDITABLE_STATUSES, "update session")

            changed_fields = []
            if match_name is not None:
                session.match_name = self._validate_name(match_name, "match_name", "Match")
                changed_fields.append("match_name")
            if turn_timer_seconds is not None:
                session.turn_timer_seconds = self._validate_turn_timer(turn_timer_seconds)
                changed_fields.append("turn_timer_seconds")
            session.updated_at = utc_now()

            await self.audit.record(
                session.session_id,
                AuditAction.SESSION_UPDATED,
                ActorType.ADMIN,
                details={
                    "changed_fields": changed_fields,
                    "reason": f"Updated: {', '.join(changed_fields)}",
                },
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Updated session {session_id}: {changed_fields}")
        return session

    async def delete_session(self, session_id: UUID) -> CascadeDeleteCounts:
        """Delete a DRAFT session and its dependents, keeping its audit history.

        The SESSION_DELETED entry deliberately references the now-deleted id.
        """
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, (SessionStatus.DRAFT,), "delete session")

            counts = await CascadeDeleteService(self.db).delete_session_with_cascade(
                session_id,
                preserve_audit_logs=True,
                commit=False,
            )
            await self.audit.record(
                session_id,
                AuditAction.SESSION_DELETED,
                ActorType.ADMIN,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Deleted session {session_id}")
        return counts

    async def assign_player(self, session_id: UUID, role: str, team_name: str) -> SessionPlayer:
        """Assign a team to a new seat and issue its access token.

        Only allowed in DRAFT or WAITING. The token is valid for
        ``token_expiry_hours`` and grants access to the player's seat.

        Raises:
            NotFoundError: Unknown session or team
            InvalidStateError: Session past WAITING
            CapacityError: All ``player_count`` seats taken
            ValidationError: Malformed role
            DuplicateError: Role already used in this session
            CollisionError: Token collided twice in a row
        """
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, EDITABLE_STATUSES, "assign players")

            existing_players = await self._get_players(session_id)
            if len(existing_players) >= session.player_count:
                raise CapacityError(session.player_count)

            validated_role = self._validate_name(role, "role", "Role")
            if any(p.role == validated_role for p in existing_players):
                raise DuplicateError(
                    "role",
                    validated_role,
                    f"Role \"{validated_role}\" is already assigned in this session",
                )

            team = await self.registry.resolve_team_by_name(team_name or "")
            if not team:
                raise NotFoundError("Team", team_name, f"Team \"{team_name}\" not found")

            token = await self._generate_unique_token()
            now = utc_now()
            player = SessionPlayer(
                player_id=uuid.uuid4(),
                session_id=session_id,
                role=validated_role,
                team_name=team.name,
                seat_number=len(existing_players),
                token=token,
                token_expires_at=now + timedelta(hours=self.settings.token_expiry_hours),
                is_connected=False,
                has_voted_this_round=False,
                created_at=now,
            )
            self.db.add(player)
            session.updated_at = now
            await self.db.flush()

            await self.audit.record(
                session_id,
                AuditAction.PLAYER_ASSIGNED,
                ActorType.ADMIN,
                details={"team_name": team.name},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            f"Assigned {team.name} as \"{validated_role}\" in session {session_id} "
            f"(token {mask_token(token)})"
        )
        return player

    async def _generate_unique_token(self) -> str:
        """Generate a globally unique player token.

        Raises:
            CollisionError: If every attempt collided with an existing token
        """
        for attempt in range(self.settings.token_generation_max_attempts):
            token = generate_player_token()
            if not await self._get_player_by_token(token):
                return token
            logger.warning(f"Token collision on attempt {attempt + 1}")

        raise CollisionError()

    async def set_session_maps(self, session_id: UUID, map_ids: list[UUID]) -> list[SessionMap]:
        """Replace the session's map pool with fresh snapshots of master maps.

        Only allowed in DRAFT. Names and image URLs are copied now so later
        edits to the master maps never reach this session.

        Raises:
            NotFoundError: Unknown session or map
            InvalidStateError: Session not in DRAFT
            ValidationError: Wrong count, duplicates or inactive maps
        """
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, (SessionStatus.DRAFT,), "set maps")

            if len(map_ids) != session.map_pool_size:
                raise ValidationError(
                    "map_ids",
                    f"Expected {session.map_pool_size} maps, received {len(map_ids)}",
                )
            map_ids = [self._parse_map_id(map_id) for map_id in map_ids]
            if len(set(map_ids)) != len(map_ids):
                raise ValidationError("map_ids", "Duplicate maps not allowed in the same session")

            master_maps = await self.registry.resolve_maps(map_ids)
            for map_id in map_ids:
                game_map = master_maps.get(map_id)
                if not game_map:
                    raise NotFoundError("Map", map_id)
                if not game_map.is_active:
                    raise ValidationError("map_ids", f"Map \"{game_map.name}\" is not active")

            await self.db.execute(delete(SessionMap).where(SessionMap.session_id == session_id))

            now = utc_now()
            snapshots = []
            for position, map_id in enumerate(map_ids):
                game_map = master_maps[map_id]
                snapshot = SessionMap(
                    session_map_id=uuid.uuid4(),
                    session_id=session_id,
                    map_id=game_map.map_id,
                    name=game_map.name,
                    image_url=self.registry.resolve_map_image_url(game_map),
                    position=position,
                    state=MapState.AVAILABLE.value,
                    created_at=now,
                )
                self.db.add(snapshot)
                snapshots.append(snapshot)

            session.updated_at = now
            await self.db.flush()

            await self.audit.record(
                session_id,
                AuditAction.MAPS_ASSIGNED,
                ActorType.ADMIN,
                details={"reason": f"Assigned {len(snapshots)} maps"},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Assigned {len(snapshots)} maps to session {session_id}")
        return snapshots

    # ===== Lifecycle transitions =====

    async def finalize_session(self, session_id: UUID) -> VetoSession:
        """Move a fully configured DRAFT session to WAITING."""
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, (SessionStatus.DRAFT,), "finalize session")

            player_total = len(await self._get_players(session_id))
            if player_total != session.player_count:
                raise ValidationError(
                    "players",
                    f"Expected {session.player_count} players, assigned {player_total}",
                )
            map_total = len(await self._get_maps(session_id))
            if map_total != session.map_pool_size:
                raise ValidationError(
                    "map_ids",
                    f"Expected {session.map_pool_size} maps, assigned {map_total}",
                )

            session.status = SessionStatus.WAITING.value
            session.updated_at = utc_now()
            await self.audit.record(session_id, AuditAction.SESSION_FINALIZED, ActorType.ADMIN)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Session {session_id} finalized and waiting for players")
        return session

    async def start_session(self, session_id: UUID) -> VetoSession:
        """Start voting on a WAITING session and start the first turn timer."""
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, (SessionStatus.WAITING,), "start session")

            now = utc_now()
            session.status = SessionStatus.IN_PROGRESS.value
            session.started_at = now
            session.timer_started_at = now
            session.timer_paused_at = None
            session.updated_at = now
            await self.audit.record(session_id, AuditAction.SESSION_STARTED, ActorType.ADMIN)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Session {session_id} started")
        return session

    async def pause_session(self, session_id: UUID) -> VetoSession:
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, (SessionStatus.IN_PROGRESS,), "pause session")

            now = utc_now()
            session.status = SessionStatus.PAUSED.value
            session.timer_paused_at = now
            session.updated_at = now
            await self.audit.record(
                session_id,
                AuditAction.SESSION_PAUSED,
                ActorType.ADMIN,
                details={"turn": session.current_turn, "round": session.current_round},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Session {session_id} paused at turn {session.current_turn}")
        return session

    async def resume_session(self, session_id: UUID) -> VetoSession:
        """Resume a PAUSED session, shifting the timer by the paused duration."""
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(session, (SessionStatus.PAUSED,), "resume session")

            now = utc_now()
            paused_at = ensure_utc(session.timer_paused_at)
            timer_started_at = ensure_utc(session.timer_started_at)
            if paused_at and timer_started_at:
                session.timer_started_at = timer_started_at + (now - paused_at)
            else:
                session.timer_started_at = now
            session.timer_paused_at = None
            session.status = SessionStatus.IN_PROGRESS.value
            session.updated_at = now
            await self.audit.record(
                session_id,
                AuditAction.SESSION_RESUMED,
                ActorType.ADMIN,
                details={"turn": session.current_turn, "round": session.current_round},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Session {session_id} resumed")
        return session

    async def end_session(self, session_id: UUID, reason: str | None = None) -> VetoSession:
        """Abort an IN_PROGRESS or PAUSED session; it completes without a winner."""
        try:
            session = await self._get_session_for_update(session_id)
            self._require_status(
                session,
                (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED),
                "end session",
            )

            now = utc_now()
            session.status = SessionStatus.COMPLETE.value
            session.completed_at = now
            session.timer_started_at = None
            session.timer_paused_at = None
            session.updated_at = now
            await CleanupService(self.db).clear_session_ip_addresses(session_id, commit=False)
            await self.audit.record(
                session_id,
                AuditAction.SESSION_ENDED,
                ActorType.ADMIN,
                details={"reason": reason},
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(f"Session {session_id} ended by admin without a winner")
        return session

    # ===== Connection tracking =====

    async def record_heartbeat(self, token: str, ip_address: str | None = None) -> SessionPlayer:
        """Mark a player connected and stamp their heartbeat.

        Raises:
            TokenError: Unknown or expired token
        """
        try:
            player = await self._get_player_by_token(token)
            if not player:
                raise TokenError(TokenError.INVALID_TOKEN)
            if not validate_token(player):
                raise TokenError(TokenError.TOKEN_EXPIRED)

            session = await self._get_session_for_update(player.session_id)
            was_connected = player.is_connected
            player.is_connected = True
            player.last_heartbeat = utc_now()
            if ip_address and SessionStatus(session.status) in ACTIVE_SESSION_STATUSES:
                player.ip_address = ip_address

            if not was_connected:
                await self.audit.record(
                    session.session_id,
                    AuditAction.PLAYER_CONNECTED,
                    ActorType.PLAYER,
                    actor_id=str(player.player_id),
                    details={"team_name": player.team_name},
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if not was_connected:
            logger.info(f"Player {player.player_id} connected to session {player.session_id}")
        return player

    async def disconnect_player(self, token: str) -> SessionPlayer:
        """Mark a player disconnected."""
        try:
            player = await self._get_player_by_token(token)
            if not player:
                raise TokenError(TokenError.INVALID_TOKEN)

            was_connected = player.is_connected
            player.is_connected = False
            if was_connected:
                await self.audit.record(
                    player.session_id,
                    AuditAction.PLAYER_DISCONNECTED,
                    ActorType.PLAYER,
                    actor_id=str(player.player_id),
                    details={"team_name": player.team_name},
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        return player

    # ===== Reads =====

    async def get_session(self, session_id: UUID) -> Optional[SessionDetails]:
        """Get a session with its players and maps, or None if it doesn't exist."""
        result = await self.db.execute(
            select(VetoSession).where(VetoSession.session_id == session_id)
        )
        session = result.scalar_one_or_none()
        if not session:
            return None

        return SessionDetails(
            session=session,
            players=await self._get_players(session_id),
            maps=await self._get_maps(session_id),
        )

    async def list_sessions(
        self,
        status: SessionStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[VetoSession]:
        """List sessions newest first, optionally filtered by a single status."""
        query = select(VetoSession)
        if status is not None:
            query = query.where(VetoSession.status == SessionStatus(status).value)
        result = await self.db.execute(
            query.order_by(VetoSession.created_at.desc()).offset(max(0, offset)).limit(limit)
        )
        return list(result.scalars().all())

    async def list_sessions_for_dashboard(
        self,
        status: SessionStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        """List sessions with a player summary for dashboard cards.

        Without a status filter, COMPLETE and EXPIRED sessions are hidden.
        """
        query = select(VetoSession)
        if status is not None:
            query = query.where(VetoSession.status == SessionStatus(status).value)
        else:
            query = query.where(VetoSession.status.notin_([
                SessionStatus.COMPLETE.value,
                SessionStatus.EXPIRED.value,
            ]))
        sessions = (await self.db.execute(
            query.order_by(VetoSession.created_at.desc()).offset(max(0, offset)).limit(limit)
        )).scalars().all()

        if not sessions:
            return []

        session_ids = [s.session_id for s in sessions]
        players = (await self.db.execute(
            select(SessionPlayer).where(SessionPlayer.session_id.in_(session_ids))
        )).scalars().all()

        players_by_session: dict[UUID, list[SessionPlayer]] = {}
        for player in sort_players_by_creation(players):
            players_by_session.setdefault(player.session_id, []).append(player)

        dashboard = []
        for session in sessions:
            session_players = players_by_session.get(session.session_id, [])
            dashboard.append({
                "session_id": session.session_id,
                "created_at": session.created_at,
                "match_name": session.match_name,
                "format": session.format,
                "status": session.status,
                "player_count": session.player_count,
                "assigned_player_count": len(session_players),
                "teams": list(dict.fromkeys(p.team_name for p in session_players)),
            })
        return dashboard

    async def count_sessions(self, status: SessionStatus | None = None) -> int:
        query = select(func.count()).select_from(VetoSession)
        if status is not None:
            query = query.where(VetoSession.status == SessionStatus(status).value)
        return (await self.db.execute(query)).scalar_one()

    async def get_session_by_token(self, token: str) -> TokenSessionView:
        """Resolve a player token to their view of the session.

        Missing rows produce an error view rather than an exception so that
        reads racing a deletion degrade gracefully.
        """
        player = await self._get_player_by_token(token)
        if not player:
            return TokenSessionView(status="error", error=self.INVALID_TOKEN)
        if not validate_token(player):
            return TokenSessionView(status="error", error=self.TOKEN_EXPIRED)

        result = await self.db.execute(
            select(VetoSession).where(VetoSession.session_id == player.session_id)
        )
        session = result.scalar_one_or_none()
        if not session:
            return TokenSessionView(status="error", error=self.SESSION_NOT_FOUND)

        all_players = await self._get_players(session.session_id)
        maps = await self._get_maps(session.session_id)

        return TokenSessionView(
            status="valid",
            session=session,
            player=player,
            other_players=[p for p in all_players if p.player_id != player.player_id],
            maps=maps,
            is_your_turn=is_your_turn(session, player, all_players),
        )
