"""Background tasks for veto session maintenance."""
import asyncio
import logging

from mapveto.database import AsyncSessionLocal
from mapveto.services.cleanup_service import CleanupService
from mapveto.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Track if maintenance task is running to prevent concurrent executions
_maintenance_task_running = False


async def run_session_maintenance() -> dict[str, int] | None:
    """Run periodic session maintenance tasks.

    Expires DRAFT/WAITING sessions past their ``expires_at`` and scrubs IP
    addresses from finished sessions. Returns the cleanup summary, or None
    if a run was already in progress or failed.
    """
    global _maintenance_task_running

    if _maintenance_task_running:
        logger.debug("Session maintenance already running, skipping")
        return None

    _maintenance_task_running = True
    try:
        async with AsyncSessionLocal() as db:
            logger.info("Starting session maintenance...")
            results = await CleanupService(db).run_all_cleanup_tasks()

            logger.info(
                f"Session maintenance completed: "
                f"{results['expired_sessions']} sessions expired, "
                f"{results['ips_cleared']} IP addresses cleared"
            )
            return results

    except Exception as e:
        logger.error(f"Error during session maintenance: {e}", exc_info=True)
        return None
    finally:
        _maintenance_task_running = False


async def session_maintenance_cycle(startup_delay_seconds: int = 60, interval_seconds: int | None = None) -> None:
    """Run maintenance forever: once after a startup delay, then every interval.

    A failed run is logged and the loop carries on. Cancel the task to stop it.
    """
    if interval_seconds is None:
        interval_seconds = settings.session_maintenance_interval_minutes * 60

    logger.info(f"Session maintenance cycle starting in {startup_delay_seconds}s")
    await asyncio.sleep(startup_delay_seconds)

    while True:
        try:
            await run_session_maintenance()
        except Exception as e:
            logger.error(f"Session maintenance cycle error: {e}")

        await asyncio.sleep(interval_seconds)
