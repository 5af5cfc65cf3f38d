"""
Key naming for everything stored in Redis.

Keys follow ``{entityKind}:{lookupKind}:{lookupValue}``. Survey lookups by
public token and by id use disjoint prefixes, and per-voter keys are
namespaced under their survey so one survey never touches another's keys.
"""

SURVEY_PREFIX = "survey"
ANALYTICS_PREFIX = "analytics"
RATE_LIMIT_PREFIX = "ratelimit"

VOTER_RECORD_VALUE = "1"
EXPIRY_KEY_PATTERN = f"{SURVEY_PREFIX}:*:expires"


def voter_record_key(survey_id: str, voter_ip: str) -> str:
    """Presence marks the voter as already admitted for the survey."""
    return f"{SURVEY_PREFIX}:{survey_id}:ip:{voter_ip}"


def voter_record_pattern(survey_id: str) -> str:
    return f"{SURVEY_PREFIX}:{survey_id}:ip:*"


def vote_counter_key(survey_id: str) -> str:
    return f"{SURVEY_PREFIX}:{survey_id}:total_votes"


def response_log_key(survey_id: str) -> str:
    return f"{SURVEY_PREFIX}:{survey_id}:responses"


def survey_expiry_key(survey_id: str) -> str:
    return f"{SURVEY_PREFIX}:{survey_id}:expires"


def survey_id_from_expiry_key(key: str) -> str | None:
    """Extract the survey id from a ``survey:{id}:expires`` key."""
    parts = key.split(":")
    if len(parts) != 3 or parts[0] != SURVEY_PREFIX or parts[2] != "expires":
        return None
    return parts[1] or None


def survey_by_token_key(public_token: str) -> str:
    return f"{SURVEY_PREFIX}:token:{public_token}"


def analytics_key(survey_id: str) -> str:
    return f"{ANALYTICS_PREFIX}:survey:{survey_id}"


def rate_limit_key(scope: str, identity: str) -> str:
    return f"{RATE_LIMIT_PREFIX}:{scope}:{identity}"
