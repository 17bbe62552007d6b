"""
Background Monitors

Two asyncio loops started in the FastAPI lifespan:
1. Device health - flips online/offline every health_check_interval_seconds
   and purges readings past retention
2. Prolonged alerts - escalates sensors stuck at hazardous levels every
   prolonged_alert_interval_seconds

Each loop logs errors and keeps running; only cancellation stops it.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from .alerts_service import check_prolonged_alerts
from .health_monitor import purge_old_readings, run_health_check
from .supabase import get_settings, get_supabase

logger = logging.getLogger(__name__)

# Give the app a moment to finish starting before the first cycle
STARTUP_DELAY = 5

# Track the background tasks so we can cancel on shutdown
_tasks: list[asyncio.Task] = []


async def start_monitors():
    """Start the background monitoring loops."""
    settings = get_settings()

    _tasks.append(asyncio.create_task(
        _run_forever("health", _health_cycle, settings.health_check_interval_seconds)
    ))
    _tasks.append(asyncio.create_task(
        _run_forever("prolonged-alerts", _prolonged_cycle, settings.prolonged_alert_interval_seconds)
    ))

    logger.info(
        f"Started monitors: health every {settings.health_check_interval_seconds}s, "
        f"prolonged alerts every {settings.prolonged_alert_interval_seconds}s"
    )


async def stop_monitors():
    """Stop the background monitoring loops."""
    for task in _tasks:
        task.cancel()
    for task in _tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
    if _tasks:
        logger.info("Stopped monitors")
    _tasks.clear()


async def _run_forever(name: str, cycle: Callable[[], Awaitable[None]], interval: int):
    """Polling loop - runs until cancelled."""
    await asyncio.sleep(STARTUP_DELAY)

    while True:
        try:
            await cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Error in {name} cycle: {e}")

        await asyncio.sleep(interval)


async def _health_cycle():
    settings = get_settings()
    supabase = get_supabase()

    report = await asyncio.to_thread(
        run_health_check, supabase, settings.offline_threshold_minutes
    )
    if report["devices_went_offline"] or report["devices_came_online"]:
        logger.info(
            f"Health: {report['devices_went_offline']} went offline, "
            f"{report['devices_came_online']} came online"
        )

    await asyncio.to_thread(purge_old_readings, supabase, settings.reading_retention_days)


async def _prolonged_cycle():
    result = await check_prolonged_alerts(get_supabase())
    if result.get("prolonged_alerts"):
        logger.warning(result["message"])
