"""
Cache-aside reads for the two hot read paths: the public survey view by
token and the admin analytics view by survey id.

Entries expire after a short TTL and are never invalidated on new
responses, so counts can be stale for up to one TTL window. Redis errors,
timeouts and undecodable entries are all treated as misses; the database
remains the source of truth.
"""

import json
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from services.redis_service import RedisService, RedisUnavailableError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    """A view plus whether it came from the cache."""

    value: T
    cached: bool


class SurveyCache:
    """Read-through cache over ``RedisService``."""

    def __init__(self, redis_service: RedisService):
        self.redis = redis_service

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Optional[T]]],
        ttl_seconds: int,
        model: Optional[type[BaseModel]] = None,
    ) -> Optional[CacheResult[T]]:
        """
        Return the cached value for ``key`` or load, store and return it.

        Args:
            key: Cache key (see ``services.cache_keys``)
            loader: Coroutine factory reading from the database; ``None``
                means "not found" and is never cached
            ttl_seconds: Expiry for the stored entry
            model: Pydantic model used to decode hits; plain JSON otherwise

        Returns:
            ``CacheResult`` or ``None`` when the loader found nothing.
        """
        hit = await self._read(key, model)
        if hit is not None:
            return CacheResult(value=hit, cached=True)

        value = await loader()
        if value is None:
            return None

        await self._write(key, value, ttl_seconds)
        return CacheResult(value=value, cached=False)

    async def _read(self, key: str, model: Optional[type[BaseModel]]) -> Any:
        try:
            raw = await self.redis.get(key)
        except RedisUnavailableError as e:
            logger.warning("cache_read_failed", key=key, error=str(e))
            return None

        if raw is None:
            return None

        try:
            if model is not None:
                return model.model_validate_json(raw)
            return json.loads(raw)
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning("cache_entry_undecodable", key=key, error=str(e))
            return None

    async def _write(self, key: str, value: Any, ttl_seconds: int) -> None:
        try:
            if isinstance(value, BaseModel):
                serialized = value.model_dump_json()
            else:
                serialized = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("cache_value_unserializable", key=key, error=str(e))
            return

        try:
            await self.redis.set(key, serialized, ttl_seconds)
        except RedisUnavailableError as e:
            logger.warning("cache_write_failed", key=key, error=str(e))
