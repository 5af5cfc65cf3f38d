"""
Background Scheduler Service

Runs the expired-survey key sweep on an interval using APScheduler,
in-process with the FastAPI application.
"""

from datetime import timezone

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from core.config import settings
from services.cache_sweeper import sweep_expired_surveys
from services.redis_service import RedisService

logger = structlog.get_logger(__name__)

# Global scheduler instance
_scheduler: AsyncIOScheduler | None = None


async def cache_sweep_job(redis_service: RedisService) -> None:
    """Sweep Redis keys of expired surveys."""
    try:
        swept = await sweep_expired_surveys(redis_service)
        logger.info("cache_sweep_job_finished", surveys_swept=swept)
    except Exception as e:
        logger.error("cache_sweep_job_failed", error=str(e), exc_info=True)


def get_scheduler() -> AsyncIOScheduler:
    """Get the global scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = AsyncIOScheduler(timezone=timezone.utc)
    return _scheduler


async def start_scheduler(redis_service: RedisService) -> None:
    """Start the background scheduler with the sweep job."""
    scheduler = get_scheduler()

    if scheduler.running:
        logger.info("scheduler_already_running")
        return

    scheduler.add_job(
        cache_sweep_job,
        trigger=IntervalTrigger(minutes=settings.CACHE_SWEEP_INTERVAL_MINUTES),
        args=[redis_service],
        id="cache_sweep",
        name="Expired Survey Key Sweep",
        replace_existing=True,
        max_instances=1,
    )

    scheduler.start()
    logger.info(
        "scheduler_started",
        sweep_interval_minutes=settings.CACHE_SWEEP_INTERVAL_MINUTES,
    )


async def stop_scheduler() -> None:
    """Stop the background scheduler."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
    _scheduler = None
