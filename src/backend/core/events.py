"""
Application lifecycle event handlers.

Creates the shared database engine and Redis client at startup, attaches
the Redis service to ``app.state`` for request dependencies, and starts
the expired-survey sweep.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db.session import close_db, init_db
from services.redis_service import RedisService

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("app_starting", app=settings.APP_NAME, env=settings.APP_ENV)

        await init_db()

        redis_service = RedisService()
        await redis_service.initialize()
        app.state.redis_service = redis_service

        if settings.ENABLE_CACHE_SWEEP:
            try:
                from services.background_scheduler import start_scheduler

                await start_scheduler(redis_service)
            except Exception as e:
                logger.exception("scheduler_start_failed", error=str(e))

        logger.info("app_started")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("app_stopping")

        try:
            from services.background_scheduler import stop_scheduler

            await stop_scheduler()
        except Exception as e:
            logger.warning("scheduler_stop_failed", error=str(e))

        await close_db()

        redis_service = getattr(app.state, "redis_service", None)
        if redis_service is not None:
            await redis_service.close()

        logger.info("app_stopped")

    return stop_app
