"""Base schemas shared by every API response."""
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer

from mapveto.utils.datetime_helpers import ensure_utc


def serialize_datetime_utc(dt: datetime) -> str:
    """ISO 8601 with a ``Z`` suffix so browser clocks read session timers correctly.

    SQLite hands back naive timestamps; they are stored in UTC.
    """
    return ensure_utc(dt).isoformat().replace("+00:00", "Z")


# Applied in python and JSON mode alike, including inside nested models
UTCDateTime = Annotated[datetime, PlainSerializer(serialize_datetime_utc, return_type=str, when_used="always")]


class BaseSchema(BaseModel):
    """Response model read from ORM rows or engine dataclasses.

    Declare timestamp fields as ``UTCDateTime``.
    """

    model_config = ConfigDict(from_attributes=True)
