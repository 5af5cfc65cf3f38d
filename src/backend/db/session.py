"""
Database session management.

The engine is created once at application startup and shared by every
request; handlers receive a fresh AsyncSession through ``get_db``.
"""

from typing import AsyncGenerator

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import settings

logger = structlog.get_logger(__name__)

_engine: AsyncEngine | None = None
async_session_maker: async_sessionmaker[AsyncSession] | None = None


def _create_engine() -> AsyncEngine:
    """Create the async engine with bounded pool and statement timeouts."""
    return create_async_engine(
        settings.DATABASE_URL,
        pool_size=settings.DATABASE_POOL_SIZE,
        pool_timeout=settings.DATABASE_POOL_TIMEOUT_SECONDS,
        pool_pre_ping=True,
        connect_args={"command_timeout": settings.DATABASE_COMMAND_TIMEOUT_SECONDS},
        echo=settings.DEBUG,
    )


async def init_db() -> None:
    """Initialize the engine and session factory."""
    global _engine, async_session_maker

    if _engine is not None:
        return

    _engine = _create_engine()
    async_session_maker = async_sessionmaker(_engine, expire_on_commit=False)
    logger.info("database_initialized")


async def close_db() -> None:
    """Dispose of the engine and its connection pool."""
    global _engine, async_session_maker

    if _engine is None:
        return

    await _engine.dispose()
    _engine = None
    async_session_maker = None
    logger.info("database_closed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency yielding a database session for one request."""
    if async_session_maker is None:
        await init_db()
    assert async_session_maker is not None

    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
