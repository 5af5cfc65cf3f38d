"""
Best-effort sweep of Redis keys belonging to expired surveys.

Admission records and counters carry their own TTLs; the sweep only
reclaims them early once the survey itself is past its expiry.
"""

import time
from typing import Optional

import structlog

from services.cache_keys import (
    EXPIRY_KEY_PATTERN,
    analytics_key,
    response_log_key,
    survey_expiry_key,
    survey_id_from_expiry_key,
    vote_counter_key,
    voter_record_pattern,
)
from services.redis_service import RedisService, RedisUnavailableError

logger = structlog.get_logger(__name__)


async def sweep_expired_surveys(
    redis_service: RedisService,
    now_ms: Optional[int] = None,
) -> int:
    """
    Delete the Redis footprint of every survey past its expiry.

    Returns the number of surveys swept. Never raises on Redis errors.
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)

    try:
        expiry_keys = await redis_service.scan_keys(EXPIRY_KEY_PATTERN)
    except RedisUnavailableError as e:
        logger.warning("cache_sweep_skipped", error=str(e))
        return 0

    swept = 0
    for key in expiry_keys:
        survey_id = survey_id_from_expiry_key(key)
        if survey_id is None:
            continue

        try:
            raw = await redis_service.get(key)
            # Swept only once strictly past expiry; equal to now is still live
            if raw is None or now_ms <= int(raw):
                continue

            voter_keys = await redis_service.scan_keys(voter_record_pattern(survey_id))
            await redis_service.delete(
                survey_expiry_key(survey_id),
                vote_counter_key(survey_id),
                response_log_key(survey_id),
                analytics_key(survey_id),
                *voter_keys,
            )
            swept += 1
        except ValueError:
            logger.warning("cache_sweep_bad_expiry", survey_id=survey_id)
        except RedisUnavailableError as e:
            logger.warning("cache_sweep_failed", survey_id=survey_id, error=str(e))

    if swept:
        logger.info("cache_sweep_completed", surveys_swept=swept)
    return swept
