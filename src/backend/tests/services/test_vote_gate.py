"""
Tests for the vote admission gate.

Covers duplicate detection, the per-survey ceiling, fail-open behaviour
when Redis is down, best-effort commit, and voter identity derivation.
"""

import json
from datetime import timedelta

import pytest
from freezegun import freeze_time

from services.cache_keys import response_log_key, vote_counter_key, voter_record_key
from services.vote_gate import (
    Admitted,
    RejectedDuplicate,
    RejectedQuotaExceeded,
    VoteAdmissionGate,
    voter_identity_from_headers,
)

SEVEN_DAYS = 7 * 24 * 3600


@pytest.fixture
def gate(redis_service) -> VoteAdmissionGate:
    return VoteAdmissionGate(redis_service, default_max_responses=100, record_ttl_seconds=SEVEN_DAYS)


@pytest.mark.unit
class TestEvaluate:
    """Admission decisions."""

    async def test_fresh_voter_is_admitted(self, gate) -> None:
        """Test that a first-time voter is admitted with every slot open."""
        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, Admitted)
        assert decision.remaining_slots == 100
        assert decision.total_votes == 0
        assert decision.degraded is False

    async def test_remaining_slots_reflect_counter(self, gate, fake_redis) -> None:
        """Test that remaining slots subtract the recorded votes."""
        await fake_redis.set(vote_counter_key("s1"), "40")

        decision = await gate.evaluate("s1", "198.51.100.7", max_responses=50)

        assert isinstance(decision, Admitted)
        assert decision.remaining_slots == 10
        assert decision.total_votes == 40

    async def test_counter_at_ceiling_rejects_quota(self, gate, fake_redis) -> None:
        """Test that a counter at the ceiling rejects the voter."""
        await fake_redis.set(vote_counter_key("s1"), "100")

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, RejectedQuotaExceeded)
        assert decision.reason == "quota_exceeded"

    async def test_counter_above_ceiling_rejects_quota(self, gate, fake_redis) -> None:
        """Test that a counter past the ceiling also rejects."""
        await fake_redis.set(vote_counter_key("s1"), "101")

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, RejectedQuotaExceeded)

    async def test_existing_record_rejects_duplicate(self, gate, fake_redis) -> None:
        """Test that a recorded voter is rejected as a duplicate."""
        await fake_redis.set(voter_record_key("s1", "198.51.100.7"), "1")

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, RejectedDuplicate)
        assert decision.reason == "already_voted"

    async def test_duplicate_takes_precedence_over_quota(self, gate, fake_redis) -> None:
        """Test that a duplicate is reported before a full survey."""
        await fake_redis.set(voter_record_key("s1", "198.51.100.7"), "1")
        await fake_redis.set(vote_counter_key("s1"), "100")

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, RejectedDuplicate)

    async def test_record_for_other_survey_does_not_block(self, gate, fake_redis) -> None:
        """Test that a vote on another survey does not count."""
        await fake_redis.set(voter_record_key("s2", "198.51.100.7"), "1")

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, Admitted)

    async def test_unparseable_counter_counts_as_zero(self, gate, fake_redis) -> None:
        """Test that a garbage counter is treated as no votes."""
        await fake_redis.set(vote_counter_key("s1"), "not-a-number")

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, Admitted)
        assert decision.remaining_slots == 100

    async def test_redis_down_fails_open(self, gate, redis_outage) -> None:
        """Test that an unavailable Redis admits the voter as degraded."""
        redis_outage()

        decision = await gate.evaluate("s1", "198.51.100.7", max_responses=20)

        assert isinstance(decision, Admitted)
        assert decision.degraded is True
        assert decision.remaining_slots == 20

    async def test_uninitialized_client_fails_open(self) -> None:
        """Test that a gate without a Redis client admits as degraded."""
        from services.redis_service import RedisService

        gate = VoteAdmissionGate(RedisService(client=None))

        decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, Admitted)
        assert decision.degraded is True


@pytest.mark.unit
class TestCommit:
    """Recording admitted submissions."""

    async def test_commit_records_voter_counter_and_payload(self, gate, fake_redis) -> None:
        """Test that commit writes the voter record, counter and payload."""
        ok = await gate.commit("s1", "198.51.100.7", "sub-1", {"submission_id": "sub-1"})

        assert ok is True
        assert await fake_redis.get(voter_record_key("s1", "198.51.100.7")) == "1"
        assert await fake_redis.get(vote_counter_key("s1")) == "1"
        log = await fake_redis.lrange(response_log_key("s1"), 0, -1)
        assert json.loads(log[0]) == {"submission_id": "sub-1"}

    async def test_commit_sets_seven_day_ttl(self, gate, fake_redis) -> None:
        """Test that every key written by commit expires after seven days."""
        await gate.commit("s1", "198.51.100.7", "sub-1", {})

        assert await fake_redis.ttl(voter_record_key("s1", "198.51.100.7")) == SEVEN_DAYS
        assert await fake_redis.ttl(vote_counter_key("s1")) == SEVEN_DAYS
        assert await fake_redis.ttl(response_log_key("s1")) == SEVEN_DAYS

    async def test_duplicate_after_commit(self, gate) -> None:
        """Test that a committed voter is rejected on the next attempt."""
        await gate.commit("s1", "203.0.113.5", "sub-1", {})

        decision = await gate.evaluate("s1", "203.0.113.5")

        assert isinstance(decision, RejectedDuplicate)

    async def test_counter_increments_per_commit(self, gate, fake_redis) -> None:
        """Test that each commit bumps the counter and grows the log."""
        for n in range(3):
            await gate.commit("s1", f"198.51.100.{n}", f"sub-{n}", {})

        assert await fake_redis.get(vote_counter_key("s1")) == "3"
        assert await fake_redis.llen(response_log_key("s1")) == 3

    async def test_commit_failure_is_swallowed(self, gate, redis_outage) -> None:
        """Test that a failed commit reports False instead of raising."""
        redis_outage()

        ok = await gate.commit("s1", "198.51.100.7", "sub-1", {})

        assert ok is False

    async def test_admission_expires_after_ttl(self, gate) -> None:
        """Test that a voter may vote again once the record expired."""
        with freeze_time("2026-03-01 12:00:00", real_asyncio=True) as frozen:
            await gate.commit("s1", "198.51.100.7", "sub-1", {})
            frozen.tick(timedelta(seconds=SEVEN_DAYS + 1))

            decision = await gate.evaluate("s1", "198.51.100.7")

        assert isinstance(decision, Admitted)

    async def test_quota_reached_after_max_commits(self, redis_service) -> None:
        """Test that the ceiling rejects once enough votes were committed."""
        gate = VoteAdmissionGate(redis_service, default_max_responses=2)
        for n in range(2):
            decision = await gate.evaluate("s1", f"198.51.100.{n}")
            assert isinstance(decision, Admitted)
            await gate.commit("s1", f"198.51.100.{n}", f"sub-{n}", {})

        decision = await gate.evaluate("s1", "198.51.100.99")

        assert isinstance(decision, RejectedQuotaExceeded)


@pytest.mark.unit
class TestVoterIdentity:
    """Voter identity from proxy headers."""

    def test_cf_connecting_ip_wins(self) -> None:
        """Test that the Cloudflare header has top priority."""
        headers = {
            "CF-Connecting-IP": "203.0.113.1",
            "X-Real-IP": "203.0.113.2",
            "X-Forwarded-For": "203.0.113.3, 10.0.0.1",
        }
        assert voter_identity_from_headers(headers) == "203.0.113.1"

    def test_real_ip_before_forwarded_for(self) -> None:
        """Test that X-Real-IP beats X-Forwarded-For."""
        headers = {"X-Real-IP": "203.0.113.2", "X-Forwarded-For": "203.0.113.3"}
        assert voter_identity_from_headers(headers) == "203.0.113.2"

    def test_first_forwarded_for_entry(self) -> None:
        """Test that the first X-Forwarded-For hop is used, trimmed."""
        headers = {"X-Forwarded-For": " 203.0.113.5 , 10.0.0.1, 10.0.0.2"}
        assert voter_identity_from_headers(headers) == "203.0.113.5"

    def test_blank_headers_are_skipped(self) -> None:
        """Test that whitespace-only headers are ignored."""
        headers = {"CF-Connecting-IP": "  ", "X-Forwarded-For": "203.0.113.5"}
        assert voter_identity_from_headers(headers) == "203.0.113.5"

    def test_fallback_when_no_headers(self) -> None:
        """Test that loopback is used when no header is present."""
        assert voter_identity_from_headers({}) == "127.0.0.1"

    def test_explicit_fallback(self) -> None:
        """Test that a caller-supplied fallback is honoured."""
        assert voter_identity_from_headers({}, fallback="0.0.0.0") == "0.0.0.0"
