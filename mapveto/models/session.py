"""Veto session model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Index
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column, SessionStatus


class VetoSession(Base):
    """One configured map veto procedure for a single match."""
    __tablename__ = "sessions"

    session_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    match_name = Column(String(100), nullable=False)
    format = Column(String(20), nullable=False)  # ABBA, MULTIPLAYER
    status = Column(String(20), nullable=False, default=SessionStatus.DRAFT.value, index=True)

    # Configuration
    turn_timer_seconds = Column(Integer, nullable=False)
    map_pool_size = Column(Integer, nullable=False)
    player_count = Column(Integer, nullable=False)

    # Ban/pick progress
    current_turn = Column(Integer, nullable=False, default=0)
    current_round = Column(Integer, nullable=False, default=1)
    timer_started_at = Column(DateTime(timezone=True), nullable=True)
    timer_paused_at = Column(DateTime(timezone=True), nullable=True)
    # Soft reference: the winning snapshot row is deleted together with the session
    winner_map_id = get_uuid_column(nullable=True)

    # Metadata
    created_by = get_uuid_column(ForeignKey("admins.admin_id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_sessions_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<VetoSession(id={self.session_id}, format={self.format}, status={self.status})>"
