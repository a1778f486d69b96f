"""API routers."""
from mapveto.routers import health, play, results, sessions

__all__ = [
    "health",
    "play",
    "results",
    "sessions",
]
