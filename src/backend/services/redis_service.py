"""
Redis client wrapper shared by the vote gate, the survey cache and the
request rate limiter.

Every command runs under a bounded timeout. Connection problems, timeouts
and server errors surface as ``RedisUnavailableError`` so callers can pick
their own degradation (fail open, treat as a miss, log and move on).
"""

import asyncio
import time
from typing import Any, Awaitable, Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from core.config import settings

logger = structlog.get_logger(__name__)


class RedisUnavailableError(Exception):
    """Redis could not serve a command (down, slow, or misconfigured)."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        message = f"Redis {operation} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class RedisService:
    """
    Thin async facade over a ``redis.asyncio`` client.

    The client is created once at startup (``initialize``) and the service
    instance is handed to request handlers through a FastAPI dependency.
    Tests construct the service around a fake client instead.
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self._client = client
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.REDIS_TIMEOUT_SECONDS
        )

    async def initialize(self) -> None:
        """Create the connection pool from ``REDIS_URL``."""
        if self._client is not None:
            return

        try:
            self._client = redis.from_url(
                settings.REDIS_URL,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self.timeout_seconds,
                socket_connect_timeout=self.timeout_seconds,
                max_connections=settings.REDIS_MAX_CONNECTIONS,
            )
            logger.info("redis_service_initialized")
        except (RedisError, ValueError) as e:
            logger.warning("redis_service_unavailable", error=str(e))
            self._client = None

    async def close(self) -> None:
        """Close the connection pool."""
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except RedisError as e:
            logger.warning("redis_close_failed", error=str(e))
        self._client = None

    @property
    def is_available(self) -> bool:
        """True when a client has been configured."""
        return self._client is not None

    async def _run(self, operation: str, command: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(command, timeout=self.timeout_seconds)
        except (RedisError, asyncio.TimeoutError, OSError) as e:
            raise RedisUnavailableError(operation, e) from e

    def _require_client(self, operation: str) -> Any:
        if self._client is None:
            raise RedisUnavailableError(operation, RuntimeError("client not initialized"))
        return self._client

    # =========================================================================
    # Plain key operations
    # =========================================================================

    async def get(self, key: str) -> Optional[str]:
        client = self._require_client("get")
        return await self._run("get", client.get(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        client = self._require_client("set")
        await self._run("set", client.set(key, value, ex=ttl_seconds))

    async def incr_with_ttl(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment a counter and refresh its expiry."""
        client = self._require_client("incr")
        value = await self._run("incr", client.incr(key))
        await self._run("expire", client.expire(key, ttl_seconds))
        return int(value)

    async def push_with_ttl(self, key: str, value: str, ttl_seconds: int) -> None:
        """Prepend to a list and refresh its expiry."""
        client = self._require_client("lpush")
        await self._run("lpush", client.lpush(key, value))
        await self._run("expire", client.expire(key, ttl_seconds))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        client = self._require_client("delete")
        return int(await self._run("delete", client.delete(*keys)))

    async def scan_keys(self, pattern: str, count: int = 500) -> list[str]:
        """Collect keys matching a pattern with SCAN (never KEYS)."""
        client = self._require_client("scan")

        async def _collect() -> list[str]:
            return [key async for key in client.scan_iter(match=pattern, count=count)]

        return await self._run("scan", _collect())

    async def ping(self) -> float:
        """Round-trip a PING and return the latency in milliseconds."""
        client = self._require_client("ping")
        start = time.perf_counter()
        await self._run("ping", client.ping())
        return (time.perf_counter() - start) * 1000

    # =========================================================================
    # Rate Limiting
    # =========================================================================

    async def check_rate_limit(
        self,
        identifier: str,
        limit: int,
        window_seconds: int = 60,
    ) -> tuple[bool, int]:
        """
        Sliding-window rate limit over a sorted set of request timestamps.

        Args:
            identifier: Fully qualified rate limit key
            limit: Maximum requests allowed in window
            window_seconds: Time window in seconds

        Returns:
            Tuple of (is_allowed, remaining_requests). Fails open when Redis
            is unavailable.
        """
        try:
            client = self._require_client("rate_limit")
            now_ms = int(time.time() * 1000)
            window_start = now_ms - window_seconds * 1000

            await self._run("zremrangebyscore", client.zremrangebyscore(identifier, 0, window_start))
            await self._run("zadd", client.zadd(identifier, {f"{now_ms}:{time.perf_counter_ns()}": now_ms}))
            count = int(await self._run("zcard", client.zcard(identifier)))
            await self._run("expire", client.expire(identifier, window_seconds))
        except RedisUnavailableError as e:
            logger.error("rate_limit_check_failed", error=str(e))
            return True, limit

        return count <= limit, max(0, limit - count)
