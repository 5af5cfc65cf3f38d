"""
Vote admission gate.

Decides whether a response submission may proceed before anything is
written to the database:

- one submission per voter identity (client IP) per survey
- no more than ``max_responses`` submissions per survey

The check-then-act sequence is not atomic. Two voters racing on the last
slot can both be admitted, so the Redis counter is a soft cap; the
database's distinct submission count is the authoritative ceiling and is
checked again before the insert.

If Redis is unreachable the gate fails open and marks the decision as
degraded rather than blocking respondents.
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

import structlog

from core.config import settings
from services.cache_keys import (
    VOTER_RECORD_VALUE,
    response_log_key,
    vote_counter_key,
    voter_record_key,
)
from services.redis_service import RedisService, RedisUnavailableError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Admitted:
    """The submission may proceed."""

    remaining_slots: int
    total_votes: int = 0
    degraded: bool = False


@dataclass(frozen=True)
class RejectedDuplicate:
    """This voter identity has already been admitted for the survey."""

    reason: str = "already_voted"
    message: str = "already voted"


@dataclass(frozen=True)
class RejectedQuotaExceeded:
    """The survey's submission counter has reached its ceiling."""

    reason: str = "quota_exceeded"
    message: str = "Survey vote limit reached"


Decision = Union[Admitted, RejectedDuplicate, RejectedQuotaExceeded]


def voter_identity_from_headers(
    headers: Mapping[str, str],
    fallback: Optional[str] = None,
) -> str:
    """
    Derive the voter identity from proxy headers.

    Precedence: ``CF-Connecting-IP``, then ``X-Real-IP``, then the first
    entry of ``X-Forwarded-For``, then the fallback constant.
    """
    cf_connecting_ip = (headers.get("CF-Connecting-IP") or "").strip()
    if cf_connecting_ip:
        return cf_connecting_ip

    real_ip = (headers.get("X-Real-IP") or "").strip()
    if real_ip:
        return real_ip

    forwarded_for = headers.get("X-Forwarded-For") or ""
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop

    return fallback or settings.VOTER_FALLBACK_IP


class VoteAdmissionGate:
    """Per-voter dedup and per-survey ceiling backed by Redis."""

    def __init__(
        self,
        redis_service: RedisService,
        default_max_responses: Optional[int] = None,
        record_ttl_seconds: Optional[int] = None,
    ):
        self.redis = redis_service
        self.default_max_responses = default_max_responses or settings.VOTE_LIMIT_PER_SURVEY
        self.record_ttl_seconds = record_ttl_seconds or settings.VOTER_RECORD_TTL_SECONDS

    async def evaluate(
        self,
        survey_id: str,
        voter_identity: str,
        max_responses: Optional[int] = None,
    ) -> Decision:
        """
        Admit or reject a submission attempt.

        The caller has already confirmed the survey exists and is open.
        """
        ceiling = max_responses if max_responses is not None else self.default_max_responses

        try:
            if await self.redis.get(voter_record_key(survey_id, voter_identity)):
                logger.info("vote_rejected_duplicate", survey_id=survey_id)
                return RejectedDuplicate()

            raw_total = await self.redis.get(vote_counter_key(survey_id))
        except RedisUnavailableError as e:
            logger.warning("vote_gate_degraded", survey_id=survey_id, error=str(e))
            return Admitted(remaining_slots=ceiling, total_votes=0, degraded=True)

        total_votes = _parse_counter(raw_total)
        if total_votes >= ceiling:
            logger.info(
                "vote_rejected_quota",
                survey_id=survey_id,
                total_votes=total_votes,
                max_responses=ceiling,
            )
            return RejectedQuotaExceeded()

        return Admitted(remaining_slots=ceiling - total_votes, total_votes=total_votes)

    async def commit(
        self,
        survey_id: str,
        voter_identity: str,
        submission_id: str,
        payload: Any,
    ) -> bool:
        """
        Record an admitted submission after the database write succeeded.

        Best-effort: failures are logged and reported through the return
        value, never raised.
        """
        ttl = self.record_ttl_seconds
        try:
            serialized = json.dumps(payload, default=str)
        except (TypeError, ValueError) as e:
            logger.warning("vote_payload_unserializable", survey_id=survey_id, error=str(e))
            serialized = json.dumps({"submission_id": submission_id})

        results = await asyncio.gather(
            self.redis.set(voter_record_key(survey_id, voter_identity), VOTER_RECORD_VALUE, ttl),
            self.redis.incr_with_ttl(vote_counter_key(survey_id), ttl),
            self.redis.push_with_ttl(response_log_key(survey_id), serialized, ttl),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error(
                "vote_commit_failed",
                survey_id=survey_id,
                submission_id=submission_id,
                errors=[str(f) for f in failures],
            )
            return False

        return True


def _parse_counter(raw: Optional[str]) -> int:
    if raw is None:
        return 0
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("vote_counter_unparseable", value=str(raw)[:20])
        return 0
