"""Datetime utility functions for timezone handling."""
from datetime import datetime, UTC
from typing import Optional


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to an aware UTC value.

    Timestamps read back from SQLite are naive and stored in UTC; aware values
    in another zone are converted.

    Args:
        dt: Datetime to normalize (can be None)

    Returns:
        UTC-aware datetime or None if input was None

    Example:
        >>> naive_dt = datetime(2025, 1, 1, 12, 0, 0)
        >>> aware_dt = ensure_utc(naive_dt)
        >>> aware_dt.tzinfo == UTC
        True

        >>> ensure_utc(None) is None
        True
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)
