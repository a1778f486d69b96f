"""Database models."""
from mapveto.models.admin import Admin
from mapveto.models.team import Team
from mapveto.models.master_map import Map
from mapveto.models.session import VetoSession
from mapveto.models.session_player import SessionPlayer
from mapveto.models.session_map import SessionMap
from mapveto.models.vote import Vote
from mapveto.models.audit_log import AuditLog

__all__ = [
    "Admin",
    "Team",
    "Map",
    "VetoSession",
    "SessionPlayer",
    "SessionMap",
    "Vote",
    "AuditLog",
]
