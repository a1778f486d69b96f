"""Multiplayer vote model."""
from sqlalchemy import Column, DateTime, ForeignKey, Integer, Boolean, Index, UniqueConstraint
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column


class Vote(Base):
    """One player's elimination vote in a MULTIPLAYER round."""
    __tablename__ = "votes"

    vote_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    session_id = get_uuid_column(ForeignKey("sessions.session_id"), nullable=False)
    round = Column(Integer, nullable=False)
    player_id = get_uuid_column(ForeignKey("session_players.player_id"), nullable=False)
    session_map_id = get_uuid_column(ForeignKey("session_maps.session_map_id"), nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    submitted_by_admin = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("player_id", "round", name="uq_votes_player_round"),
        Index("ix_votes_session_id_round", "session_id", "round"),
    )

    def __repr__(self):
        return f"<Vote(id={self.vote_id}, round={self.round}, player={self.player_id})>"
