"""Session map snapshot model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Index
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column, MapState


class SessionMap(Base):
    """Per-session copy of a master map.

    ``map_id`` points back at the master record for audit purposes only;
    ``name`` and ``image_url`` are the frozen values shown to players.
    """
    __tablename__ = "session_maps"

    session_map_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    session_id = get_uuid_column(ForeignKey("sessions.session_id"), nullable=False)
    map_id = get_uuid_column(nullable=False)  # Soft reference; master maps may be deleted
    name = Column(String(100), nullable=False)
    image_url = Column(String(2048), nullable=False, default="")
    position = Column(Integer, nullable=False, default=0)  # Order within the pool
    state = Column(String(20), nullable=False, default=MapState.AVAILABLE.value)

    # Ban tracking (turn and round are always set together)
    banned_by_player_id = get_uuid_column(nullable=True)
    banned_at_turn = Column(Integer, nullable=True)
    banned_at_round = Column(Integer, nullable=True)
    vote_count = Column(Integer, nullable=True)  # MULTIPLAYER only

    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        Index("ix_session_maps_session_id", "session_id"),
        Index("ix_session_maps_session_id_state", "session_id", "state"),
    )

    def __repr__(self):
        return f"<SessionMap(id={self.session_map_id}, name={self.name}, state={self.state})>"
