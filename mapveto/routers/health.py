"""Health check endpoint."""
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from mapveto.database import engine, get_db
from mapveto.models.base import SessionStatus
from mapveto.services import SessionService
from mapveto.config import get_settings
from mapveto.version import APP_VERSION
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "error", "detail": "Database connection failed"},
        )

    return {
        "status": "ok",
        "database": "connected",
    }


@router.get("/status")
async def service_status(db: AsyncSession = Depends(get_db)):
    """Version, environment and how many sessions are running right now."""
    settings = get_settings()
    service = SessionService(db)
    return {
        "live_sessions": {
            status.value: await service.count_sessions(status=status)
            for status in (SessionStatus.IN_PROGRESS, SessionStatus.PAUSED)
        },
        "version": APP_VERSION,
        "environment": settings.environment,
        "session_maintenance_enabled": settings.session_maintenance_enabled,
    }
