"""Player API, addressed by the access token in the URL."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from mapveto.database import get_db
from mapveto.dependencies import get_client_ip, get_player_token
from mapveto.routers.errors import to_http_exception
from mapveto.routers.results import results_response
from mapveto.schemas.session import (
    HeartbeatResponse,
    MapActionRequest,
    PlayerResponse,
    PlayerSessionResponse,
    SessionMapResponse,
    SessionResponse,
    SessionResultsResponse,
)
from mapveto.services import ResultsService, SessionService, VotingService
from mapveto.utils.exceptions import MapVetoException
from mapveto.utils.tokens import mask_token

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/play", tags=["play"])


async def _player_view(db: AsyncSession, token: str) -> PlayerSessionResponse:
    view = await SessionService(db).get_session_by_token(token)
    if view.status != "valid":
        logger.info(f"Token {mask_token(token)} resolved to {view.error}")
        return PlayerSessionResponse(status=view.status, error=view.error)

    return PlayerSessionResponse(
        status=view.status,
        session=SessionResponse.model_validate(view.session),
        player=PlayerResponse.model_validate(view.player),
        other_players=[PlayerResponse.model_validate(p) for p in view.other_players],
        maps=[SessionMapResponse.model_validate(m) for m in view.maps],
        is_your_turn=view.is_your_turn,
    )


@router.get("/{token}", response_model=PlayerSessionResponse)
async def get_player_session(
    token: str = Depends(get_player_token),
    db: AsyncSession = Depends(get_db),
):
    """The player's view of their session, including whether it is their turn.

    Unknown or expired tokens return an error view rather than an HTTP error.
    """
    return await _player_view(db, token)


@router.post("/{token}/heartbeat", response_model=HeartbeatResponse)
async def heartbeat(
    request: Request,
    token: str = Depends(get_player_token),
    db: AsyncSession = Depends(get_db),
):
    try:
        player = await SessionService(db).record_heartbeat(token, ip_address=get_client_ip(request))
    except MapVetoException as e:
        raise to_http_exception(e)
    return HeartbeatResponse.model_validate(player)


@router.post("/{token}/disconnect", response_model=HeartbeatResponse)
async def disconnect(
    token: str = Depends(get_player_token),
    db: AsyncSession = Depends(get_db),
):
    try:
        player = await SessionService(db).disconnect_player(token)
    except MapVetoException as e:
        raise to_http_exception(e)
    return HeartbeatResponse.model_validate(player)


@router.post("/{token}/ban", response_model=PlayerSessionResponse)
async def ban_map(
    request: MapActionRequest,
    token: str = Depends(get_player_token),
    db: AsyncSession = Depends(get_db),
):
    """Ban a map on the player's ABBA turn."""
    try:
        await VotingService(db).ban_map(token, request.session_map_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return await _player_view(db, token)


@router.post("/{token}/vote", response_model=PlayerSessionResponse)
async def submit_vote(
    request: MapActionRequest,
    token: str = Depends(get_player_token),
    db: AsyncSession = Depends(get_db),
):
    """Vote to eliminate a map in the current MULTIPLAYER round."""
    try:
        await VotingService(db).submit_vote(token, request.session_map_id)
    except MapVetoException as e:
        raise to_http_exception(e)
    return await _player_view(db, token)


@router.get("/{token}/results", response_model=SessionResultsResponse)
async def get_player_results(
    token: str = Depends(get_player_token),
    db: AsyncSession = Depends(get_db),
):
    lookup = await ResultsService(db).get_session_results_by_token(token)
    return results_response(lookup)
