"""Master map pool model (CMS-managed)."""
from sqlalchemy import Column, String, DateTime, Boolean
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column


class Map(Base):
    """Map in the master pool.

    Sessions never read these rows for display; they copy ``name`` and the
    resolved image URL into ``SessionMap`` snapshots at assignment time.
    """
    __tablename__ = "maps"

    map_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False)
    image_url = Column(String(2048), nullable=True)
    image_storage_id = Column(String(255), nullable=True)  # Blob storage reference, wins over image_url
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self):
        return f"<Map(id={self.map_id}, name={self.name}, active={self.is_active})>"
