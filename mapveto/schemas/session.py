"""Veto session Pydantic schemas."""
from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID

from mapveto.schemas.base import BaseSchema, UTCDateTime


# Request schemas
class CreateSessionRequest(BaseModel):
    """Request to create a new veto session.

    Ranges are enforced by the session engine so its error messages reach
    the client unchanged.
    """
    match_name: str = Field(..., description="Display name of the match")
    format: str = Field(..., description="ABBA or MULTIPLAYER")
    player_count: int = Field(..., description="Number of player seats (2-8)")
    turn_timer_seconds: Optional[int] = Field(default=None, description="Seconds per turn (10-300)")
    map_pool_size: Optional[int] = Field(default=None, description="Maps in the pool (3-15)")
    created_by: UUID = Field(..., description="Admin creating the session")


class UpdateSessionRequest(BaseModel):
    """Request to update a session that has not started."""
    match_name: Optional[str] = None
    turn_timer_seconds: Optional[int] = None


class AssignPlayerRequest(BaseModel):
    """Request to assign a team to a player seat."""
    role: str = Field(..., description="Seat label, unique within the session")
    team_name: str = Field(..., description="Exact registered team name")


class SetSessionMapsRequest(BaseModel):
    """Request to replace the session's map pool."""
    map_ids: List[UUID]


class EndSessionRequest(BaseModel):
    """Request to abort a running session."""
    reason: Optional[str] = Field(default=None, max_length=500)


class MapActionRequest(BaseModel):
    """Ban (ABBA) or vote against (MULTIPLAYER) a map in the pool."""
    session_map_id: UUID


# Response schemas
class SessionResponse(BaseSchema):
    """Session summary."""
    session_id: UUID
    match_name: str
    format: str
    status: str
    turn_timer_seconds: int
    map_pool_size: int
    player_count: int
    current_turn: int
    current_round: int
    timer_started_at: Optional[UTCDateTime]
    timer_paused_at: Optional[UTCDateTime]
    winner_map_id: Optional[UUID]
    created_by: UUID
    created_at: UTCDateTime
    updated_at: UTCDateTime
    started_at: Optional[UTCDateTime]
    completed_at: Optional[UTCDateTime]
    expires_at: UTCDateTime


class PlayerResponse(BaseSchema):
    """Player seat as shown to other players (no credentials)."""
    player_id: UUID
    role: str
    team_name: str
    is_connected: bool
    has_voted_this_round: bool


class AdminPlayerResponse(PlayerResponse):
    """Player seat as shown to admins, including the access token to distribute."""
    session_id: UUID
    token: str
    token_expires_at: UTCDateTime
    last_heartbeat: Optional[UTCDateTime]
    created_at: UTCDateTime


class SessionMapResponse(BaseSchema):
    """Map snapshot inside a session pool."""
    session_map_id: UUID
    map_id: UUID
    name: str
    image_url: str
    position: int
    state: str
    banned_by_player_id: Optional[UUID]
    banned_at_turn: Optional[int]
    banned_at_round: Optional[int]
    vote_count: Optional[int]


class SessionDetailResponse(BaseSchema):
    """Session with its players and map pool."""
    session: SessionResponse
    players: List[AdminPlayerResponse]
    maps: List[SessionMapResponse]


class SessionListResponse(BaseSchema):
    sessions: List[SessionResponse]
    total: int


class DashboardSessionResponse(BaseSchema):
    """Session card for the admin dashboard."""
    session_id: UUID
    created_at: UTCDateTime
    match_name: str
    format: str
    status: str
    player_count: int
    assigned_player_count: int
    teams: List[str]


class DashboardResponse(BaseSchema):
    sessions: List[DashboardSessionResponse]


class DeleteSessionResponse(BaseSchema):
    """Rows removed when a session was deleted."""
    success: bool
    votes: int
    players: int
    maps: int
    audit_logs: int
    session: int


class PlayerSessionResponse(BaseSchema):
    """A player's view of their session, resolved from their token."""
    status: str
    error: Optional[str] = None
    session: Optional[SessionResponse] = None
    player: Optional[PlayerResponse] = None
    other_players: List[PlayerResponse] = []
    maps: List[SessionMapResponse] = []
    is_your_turn: bool = False


class HeartbeatResponse(BaseSchema):
    player_id: UUID
    is_connected: bool
    last_heartbeat: Optional[UTCDateTime]


class BanHistoryEntryResponse(BaseSchema):
    order: int
    team_name: str
    map_name: str
    map_image: str


class SessionResultsResponse(BaseSchema):
    """Results of a completed session, or an error code."""
    status: str
    error: Optional[str] = None
    session: Optional[SessionResponse] = None
    teams: List[str] = []
    winner_map: Optional[SessionMapResponse] = None
    ban_history: List[BanHistoryEntryResponse] = []
    maps: List[SessionMapResponse] = []
