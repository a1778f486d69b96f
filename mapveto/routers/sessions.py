"""Admin API for configuring and running veto sessions."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from uuid import UUID
import logging

from mapveto.database import get_db
from mapveto.models.base import SessionStatus
from mapveto.routers.errors import to_http_exception
from mapveto.schemas.audit import AuditLogListResponse, AuditLogResponse
from mapveto.schemas.session import (
    AdminPlayerResponse,
    AssignPlayerRequest,
    CreateSessionRequest,
    DashboardResponse,
    DashboardSessionResponse,
    DeleteSessionResponse,
    EndSessionRequest,
    MapActionRequest,
    SessionDetailResponse,
    SessionListResponse,
    SessionMapResponse,
    SessionResponse,
    SetSessionMapsRequest,
    UpdateSessionRequest,
)
from mapveto.services import AuditService, SessionService, VotingService
from mapveto.utils.exceptions import MapVetoException

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Create a new DRAFT session."""
    try:
        session = await SessionService(db).create_session(
            match_name=request.match_name,
            format=request.format,
            player_count=request.player_count,
            turn_timer_seconds=request.turn_timer_seconds,
            map_pool_size=request.map_pool_size,
            created_by=request.created_by,
        )
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    status: Optional[SessionStatus] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List sessions newest first, optionally filtered by status."""
    service = SessionService(db)
    sessions = await service.list_sessions(status=status, limit=limit, offset=offset)
    return SessionListResponse(
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=await service.count_sessions(status=status),
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def list_dashboard_sessions(
    status: Optional[SessionStatus] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Session cards for the admin dashboard (finished sessions hidden by default)."""
    entries = await SessionService(db).list_sessions_for_dashboard(
        status=status, limit=limit, offset=offset
    )
    return DashboardResponse(sessions=[DashboardSessionResponse(**entry) for entry in entries])


@router.get("/{session_id}", response_model=SessionDetailResponse)
async def get_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    details = await SessionService(db).get_session(session_id)
    if not details:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")

    return SessionDetailResponse(
        session=SessionResponse.model_validate(details.session),
        players=[AdminPlayerResponse.model_validate(p) for p in details.players],
        maps=[SessionMapResponse.model_validate(m) for m in details.maps],
    )


@router.patch("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: UUID,
    request: UpdateSessionRequest,
    db: AsyncSession = Depends(get_db),
):
    try:
        session = await SessionService(db).update_session(
            session_id,
            match_name=request.match_name,
            turn_timer_seconds=request.turn_timer_seconds,
        )
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.delete("/{session_id}", response_model=DeleteSessionResponse)
async def delete_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a DRAFT session. Its audit history is kept."""
    try:
        counts = await SessionService(db).delete_session(session_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return DeleteSessionResponse(success=True, **counts.as_dict())


@router.post("/{session_id}/players", response_model=AdminPlayerResponse, status_code=201)
async def assign_player(
    session_id: UUID,
    request: AssignPlayerRequest,
    db: AsyncSession = Depends(get_db),
):
    """Assign a team to a seat. The response carries the player's access token."""
    try:
        player = await SessionService(db).assign_player(
            session_id, role=request.role, team_name=request.team_name
        )
    except MapVetoException as e:
        raise to_http_exception(e)
    return AdminPlayerResponse.model_validate(player)


@router.post("/{session_id}/players/{player_id}/vote", response_model=SessionResponse)
async def vote_for_player(
    session_id: UUID,
    player_id: UUID,
    request: MapActionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Vote for a seat in the current MULTIPLAYER round. Recorded as an admin vote."""
    try:
        session = await VotingService(db).submit_vote_for_player(
            session_id, player_id, request.session_map_id
        )
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.put("/{session_id}/maps", response_model=list[SessionMapResponse])
async def set_session_maps(
    session_id: UUID,
    request: SetSessionMapsRequest,
    db: AsyncSession = Depends(get_db),
):
    """Replace the session's map pool."""
    try:
        maps = await SessionService(db).set_session_maps(session_id, request.map_ids)
    except MapVetoException as e:
        raise to_http_exception(e)
    return [SessionMapResponse.model_validate(m) for m in maps]


@router.post("/{session_id}/finalize", response_model=SessionResponse)
async def finalize_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        session = await SessionService(db).finalize_session(session_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/start", response_model=SessionResponse)
async def start_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        session = await SessionService(db).start_session(session_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/pause", response_model=SessionResponse)
async def pause_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        session = await SessionService(db).pause_session(session_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/resume", response_model=SessionResponse)
async def resume_session(session_id: UUID, db: AsyncSession = Depends(get_db)):
    try:
        session = await SessionService(db).resume_session(session_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.post("/{session_id}/end", response_model=SessionResponse)
async def end_session(
    session_id: UUID,
    request: Optional[EndSessionRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """Abort a running session without declaring a winner."""
    try:
        session = await SessionService(db).end_session(
            session_id, reason=request.reason if request else None
        )
    except MapVetoException as e:
        raise to_http_exception(e)
    return SessionResponse.model_validate(session)


@router.get("/{session_id}/audit", response_model=AuditLogListResponse)
async def get_audit_log(
    session_id: UUID,
    limit: Optional[int] = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Audit history, newest first. Available for deleted sessions too."""
    logs = await AuditService(db).get_session_audit_log(session_id, limit=limit, offset=offset)
    return AuditLogListResponse(logs=[AuditLogResponse.model_validate(log) for log in logs])
