"""Public results of completed sessions."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from mapveto.database import get_db
from mapveto.schemas.session import (
    BanHistoryEntryResponse,
    SessionMapResponse,
    SessionResponse,
    SessionResultsResponse,
)
from mapveto.services import ResultsService
from mapveto.services.results_service import ResultsLookup

router = APIRouter(prefix="/results", tags=["results"])


def results_response(lookup: ResultsLookup) -> SessionResultsResponse:
    if lookup.status != "valid":
        return SessionResultsResponse(status=lookup.status, error=lookup.error)

    results = lookup.results
    return SessionResultsResponse(
        status=lookup.status,
        session=SessionResponse.model_validate(lookup.session),
        teams=results.teams,
        winner_map=SessionMapResponse.model_validate(results.winner_map) if results.winner_map else None,
        ban_history=[BanHistoryEntryResponse.model_validate(entry) for entry in results.ban_history],
        maps=[SessionMapResponse.model_validate(m) for m in results.maps],
    )


@router.get("/{session_id}", response_model=SessionResultsResponse)
async def get_session_results(session_id: UUID, db: AsyncSession = Depends(get_db)):
    """Winner and ban history once a session is COMPLETE."""
    lookup = await ResultsService(db).get_session_results(session_id)
    return results_response(lookup)
