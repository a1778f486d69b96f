"""FastAPI application entry point."""
import os

# Force UTC before any module caches timezone information
os.environ['TZ'] = 'UTC'

import asyncio
import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from mapveto.config import get_settings
from mapveto.version import APP_VERSION
from mapveto.utils.tokens import mask_token
from mapveto.routers import health, play, results, sessions
from mapveto.tasks import session_maintenance_cycle

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOGS_DIR = Path("logs")
PLAY_PREFIX = "/play/"


class SQLTransactionFilter(logging.Filter):
    """Keeps the SQL log to one line per statement."""

    NOISE = ("ROLLBACK", "BEGIN", "COMMIT", "generated in")
    STATEMENTS = ("SELECT", "DELETE", "INSERT", "UPDATE")

    def filter(self, record):
        if record.levelno != logging.INFO:
            return True

        message = record.getMessage()
        if any(keyword in message for keyword in self.NOISE):
            return False
        if any(keyword in message for keyword in self.STATEMENTS):
            record.msg = " ".join(message.split())
            record.args = ()
        return True


def _rotating_handler(filename: str, max_mb: int, backups: int, fmt: str = LOG_FORMAT) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        LOGS_DIR / filename,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backups,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _dedicated_logger(name: str, handler: logging.Handler) -> logging.Logger:
    """A logger that writes only to its own file."""
    dedicated = logging.getLogger(name)
    dedicated.handlers.clear()
    dedicated.addHandler(handler)
    dedicated.setLevel(logging.INFO)
    dedicated.propagate = False
    return dedicated


def configure_logging() -> logging.Logger:
    """Console plus rotating files: general, API requests and SQL statements.

    Returns the API request logger.
    """
    LOGS_DIR.mkdir(exist_ok=True)
    general_handler = _rotating_handler("mapveto.log", max_mb=1, backups=5)

    # force=True replaces any configuration uvicorn installed first
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(), general_handler],
        force=True,
    )

    access_logger = logging.getLogger("uvicorn.access")
    access_logger.setLevel(logging.INFO)
    if general_handler not in access_logger.handlers:
        access_logger.addHandler(general_handler)

    sql_logger = _dedicated_logger(
        "sqlalchemy.engine.Engine", _rotating_handler("mapveto_sql.log", max_mb=1, backups=5)
    )
    sql_logger.addFilter(SQLTransactionFilter())

    return _dedicated_logger(
        "mapveto.api",
        _rotating_handler("mapveto_api.log", max_mb=2, backups=15, fmt="%(asctime)s - %(levelname)s - %(message)s"),
    )


api_logger = configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Manage application startup and shutdown tasks."""
    logger.info("=" * 60)
    logger.info("Map Veto API Starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info("=" * 60)

    maintenance_task = None
    if settings.session_maintenance_enabled:
        try:
            maintenance_task = asyncio.create_task(session_maintenance_cycle())
            logger.info(
                f"Session maintenance task started "
                f"(runs every {settings.session_maintenance_interval_minutes} minutes)"
            )
        except Exception as e:
            logger.error(f"Failed to start session maintenance cycle: {e}")
    else:
        logger.info("Session maintenance is disabled, not starting cycle")

    try:
        yield
    finally:
        logger.info("Shutting down background tasks...")
        if maintenance_task:
            maintenance_task.cancel()
            try:
                await asyncio.wait_for(maintenance_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Session maintenance task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Session maintenance task did not cancel within timeout, forcing shutdown")
            except Exception as e:
                logger.error(f"Error cancelling session maintenance task: {e}")

        logger.info("Map Veto API Shutting Down... Goodbye!")


app = FastAPI(
    title="Map Veto API",
    description="Map ban/pick sessions for competitive matches",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with user-friendly messages."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field"
        errors.append({
            "field": field_path,
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "errors": errors
        }
    )


def _loggable_path(path: str) -> str:
    """Replace the player token in /play/ paths."""
    if not path.startswith(PLAY_PREFIX):
        return path
    token, _, rest = path[len(PLAY_PREFIX):].partition("/")
    return f"{PLAY_PREFIX}{mask_token(token)}" + (f"/{rest}" if rest else "")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """One START and one COMPLETE/EXCEPTION line per request in the API log."""
    started = time.perf_counter()
    client_ip = request.client.host if request.client else "unknown"
    line = f"{request.method} {_loggable_path(request.url.path)}"
    api_logger.info(f">> START | {line} | IP: {client_ip}")

    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(
            f"<< EXCEPTION | {line} | Error: {str(e)[:100]} | "
            f"Time: {time.perf_counter() - started:.3f}s | IP: {client_ip}"
        )
        raise

    api_logger.info(
        f"<< COMPLETE | {line} | Status: {response.status_code} | "
        f"Time: {time.perf_counter() - started:.3f}s | IP: {client_ip}"
    )
    return response


allowed_origins = list(dict.fromkeys([settings.frontend_url, *settings.cors_origins]))
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(sessions.router)
app.include_router(play.router)
app.include_router(results.router)
app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Map Veto API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
