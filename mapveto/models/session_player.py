"""Session player seat model."""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Boolean, UniqueConstraint
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column


class SessionPlayer(Base):
    """Seat assigned to a team inside a session.

    ``team_name`` is frozen at assignment time rather than referencing the
    team registry. Insertion order (``seat_number`` then ``created_at``)
    defines the player index used by the ABBA turn pattern.
    """
    __tablename__ = "session_players"

    player_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    session_id = get_uuid_column(ForeignKey("sessions.session_id"), nullable=False, index=True)
    role = Column(String(100), nullable=False)
    team_name = Column(String(100), nullable=False, index=True)
    seat_number = Column(Integer, nullable=False, default=0)

    # Bearer credential
    token = Column(String(32), nullable=False, unique=True, index=True)
    token_expires_at = Column(DateTime(timezone=True), nullable=False)

    # Connection tracking
    ip_address = Column(String(45), nullable=True)
    is_connected = Column(Boolean, nullable=False, default=False)
    last_heartbeat = Column(DateTime(timezone=True), nullable=True)

    has_voted_this_round = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    __table_args__ = (
        UniqueConstraint("session_id", "role", name="uq_session_players_session_role"),
    )

    def __repr__(self):
        return f"<SessionPlayer(id={self.player_id}, role={self.role}, team={self.team_name})>"
