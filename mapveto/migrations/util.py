"""Utility functions for Alembic migrations."""
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from alembic import op


def get_uuid_type():
    """Get the UUID column type matching the models' adaptive UUID column.

    PostgreSQL gets its native UUID type; every other dialect stores the hex
    form in a ``String(36)`` column.
    """
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        return UUID(as_uuid=True)
    return sa.String(length=36)


def get_timestamp_default():
    """Server default for creation timestamps (NOW() on PostgreSQL)."""
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        return sa.text('NOW()')
    return sa.text('CURRENT_TIMESTAMP')
