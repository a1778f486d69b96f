"""Admin registry model."""
from sqlalchemy import Column, String, DateTime, Boolean
from datetime import datetime, UTC
import uuid

from mapveto.database import Base
from mapveto.models.base import get_uuid_column


class Admin(Base):
    """Administrator allowed to configure veto sessions."""
    __tablename__ = "admins"

    admin_id = get_uuid_column(primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    avatar_url = Column(String(2048), nullable=True)
    is_root_admin = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC))

    def __repr__(self):
        return f"<Admin(id={self.admin_id}, email={self.email})>"
