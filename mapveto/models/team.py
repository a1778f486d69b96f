"""Team registry model."""
from sqlalchemy import Column, String, DateTime
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column


class Team(Base):
    """Registered team, reusable across sessions."""
    __tablename__ = "teams"

    team_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False, index=True)
    logo_url = Column(String(2048), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self):
        return f"<Team(id={self.team_id}, name={self.name})>"
