"""Utilities module."""
from mapveto.utils.datetime_helpers import ensure_utc, utc_now
from mapveto.utils.tokens import generate_player_token, mask_token

__all__ = ["ensure_utc", "utc_now", "generate_player_token", "mask_token"]
