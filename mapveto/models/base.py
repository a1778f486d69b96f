"""Base utilities and enumerations for SQLAlchemy models."""
from enum import Enum
import uuid
from sqlalchemy import Column, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.sql import sqltypes


class SessionFormat(str, Enum):
    """Voting format of a session."""
    ABBA = "ABBA"
    MULTIPLAYER = "MULTIPLAYER"


class SessionStatus(str, Enum):
    """Session lifecycle status."""
    DRAFT = "DRAFT"
    WAITING = "WAITING"
    IN_PROGRESS = "IN_PROGRESS"
    PAUSED = "PAUSED"
    COMPLETE = "COMPLETE"
    EXPIRED = "EXPIRED"


ACTIVE_SESSION_STATUSES = frozenset({
    SessionStatus.DRAFT,
    SessionStatus.WAITING,
    SessionStatus.IN_PROGRESS,
    SessionStatus.PAUSED,
})


class MapState(str, Enum):
    """State of a map inside a session pool."""
    AVAILABLE = "AVAILABLE"
    BANNED = "BANNED"
    WINNER = "WINNER"


class ActorType(str, Enum):
    """Who performed an audited action."""
    ADMIN = "ADMIN"
    PLAYER = "PLAYER"
    SYSTEM = "SYSTEM"


class AuditAction(str, Enum):
    """Closed vocabulary of audited session events."""
    # Session lifecycle
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_UPDATED = "SESSION_UPDATED"
    SESSION_FINALIZED = "SESSION_FINALIZED"
    SESSION_STARTED = "SESSION_STARTED"
    SESSION_PAUSED = "SESSION_PAUSED"
    SESSION_RESUMED = "SESSION_RESUMED"
    SESSION_ENDED = "SESSION_ENDED"
    SESSION_DELETED = "SESSION_DELETED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    # Player events
    PLAYER_CONNECTED = "PLAYER_CONNECTED"
    PLAYER_DISCONNECTED = "PLAYER_DISCONNECTED"
    PLAYER_ASSIGNED = "PLAYER_ASSIGNED"
    # Map events
    MAP_BANNED = "MAP_BANNED"
    MAPS_ASSIGNED = "MAPS_ASSIGNED"
    # Voting
    VOTE_SUBMITTED = "VOTE_SUBMITTED"
    # Round/timer events
    ROUND_RESOLVED = "ROUND_RESOLVED"
    TIMER_EXPIRED = "TIMER_EXPIRED"
    RANDOM_SELECTION = "RANDOM_SELECTION"
    WINNER_DECLARED = "WINNER_DECLARED"


def get_uuid_column(*args, **kwargs):
    """Get UUID column type based on database dialect.

    Returns a SQLAlchemy Column configured for UUID storage. PostgreSQL uses
    its native UUID type; every other dialect stores lowercase hex in a
    ``String(36)`` column.

    Args:
        *args: Positional arguments to pass to Column (e.g., ForeignKey)
        **kwargs: Keyword arguments to pass to Column (e.g., primary_key=True)

    Returns:
        Column: Configured SQLAlchemy Column for UUID storage

    Example:
        session_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
        player_id = get_uuid_column(ForeignKey("session_players.player_id"), nullable=True)
    """
    class AdaptiveUUID(sqltypes.TypeDecorator):
        """UUID type that stores hex strings on dialects without native UUIDs."""

        impl = sqltypes.String
        cache_ok = True

        def load_dialect_impl(self, dialect):
            if dialect.name == "postgresql":
                return dialect.type_descriptor(PGUUID(as_uuid=True))
            return dialect.type_descriptor(String(36))

        @staticmethod
        def _coerce_uuid(value):
            if value is None or isinstance(value, uuid.UUID):
                return value
            return uuid.UUID(str(value))

        def process_bind_param(self, value, dialect):
            value = self._coerce_uuid(value)
            if value is None:
                return None
            if dialect.name == "postgresql":
                return value
            return value.hex

        def process_result_value(self, value, dialect):
            if value is None:
                return None
            return self._coerce_uuid(value)

    return Column(
        AdaptiveUUID(),
        *args,
        **kwargs
    )
