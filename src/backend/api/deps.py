"""
Shared dependencies for API endpoints.

Includes:
- Redis, repository and service wiring
- Voter identity from proxy headers
- Admin authentication (Supabase JWT)
- Rate limiting (per client IP)
"""

from typing import Annotated, Optional

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.security import decode_supabase_token
from db.session import get_db
from models.admin_user import AdminUser
from repositories.admin_user_repository import AdminUserRepository
from repositories.response_repository import ResponseRepository
from repositories.survey_repository import SurveyRepository
from services.analytics_service import AnalyticsService
from services.cache_keys import rate_limit_key
from services.redis_service import RedisService
from services.submission_service import SubmissionService
from services.survey_cache import SurveyCache
from services.survey_service import SurveyService
from services.vote_gate import VoteAdmissionGate, voter_identity_from_headers

logger = structlog.get_logger(__name__)

# Missing credentials are reported as 401 by get_current_admin
security_optional = HTTPBearer(auto_error=False)


# =============================================================================
# Infrastructure
# =============================================================================


def get_redis_service(request: Request) -> RedisService:
    """
    Get the Redis service created at startup.

    When startup did not run (or Redis was never configured) an
    uninitialized service is attached instead; every command on it raises
    ``RedisUnavailableError`` and callers degrade accordingly.
    """
    redis_service = getattr(request.app.state, "redis_service", None)
    if redis_service is None:
        redis_service = RedisService()
        request.app.state.redis_service = redis_service
    return redis_service


def get_voter_identity(request: Request) -> str:
    """Client IP used as the voter identity."""
    return voter_identity_from_headers(request.headers, settings.VOTER_FALLBACK_IP)


def get_vote_gate(redis: RedisService = Depends(get_redis_service)) -> VoteAdmissionGate:
    return VoteAdmissionGate(redis)


def get_survey_cache(redis: RedisService = Depends(get_redis_service)) -> SurveyCache:
    return SurveyCache(redis)


def get_survey_repository(db: AsyncSession = Depends(get_db)) -> SurveyRepository:
    return SurveyRepository(db)


def get_response_repository(db: AsyncSession = Depends(get_db)) -> ResponseRepository:
    return ResponseRepository(db)


def get_survey_service(
    surveys: SurveyRepository = Depends(get_survey_repository),
    responses: ResponseRepository = Depends(get_response_repository),
    cache: SurveyCache = Depends(get_survey_cache),
    redis: RedisService = Depends(get_redis_service),
) -> SurveyService:
    return SurveyService(surveys, responses, cache, redis)


def get_submission_service(
    surveys: SurveyRepository = Depends(get_survey_repository),
    responses: ResponseRepository = Depends(get_response_repository),
    gate: VoteAdmissionGate = Depends(get_vote_gate),
) -> SubmissionService:
    return SubmissionService(surveys, responses, gate)


def get_analytics_service(
    surveys: SurveyRepository = Depends(get_survey_repository),
    responses: ResponseRepository = Depends(get_response_repository),
    cache: SurveyCache = Depends(get_survey_cache),
) -> AnalyticsService:
    return AnalyticsService(surveys, responses, cache)


# =============================================================================
# Admin Authentication (Supabase JWT)
# =============================================================================


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_admin(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security_optional)],
    db: AsyncSession = Depends(get_db),
) -> AdminUser:
    """
    Resolve the admin behind a Supabase access token.

    The admin row is keyed by email and created on first use from the
    token's ``user_metadata``.

    Raises:
        HTTPException: 401 if the token is missing, invalid or has no email.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_supabase_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token")

    email = payload.get("email")
    if not email:
        raise _unauthorized("Invalid token payload")

    metadata = payload.get("user_metadata") or {}
    admin = await AdminUserRepository(db).get_or_create(
        email=email,
        name=metadata.get("full_name") or metadata.get("name"),
        avatar_url=metadata.get("avatar_url"),
    )
    structlog.contextvars.bind_contextvars(admin_id=str(admin.id))
    return admin


# =============================================================================
# Rate Limiting
# =============================================================================


class RateLimiter:
    """
    Rate limiter dependency for API endpoints.

    Uses Redis sliding window algorithm for distributed rate limiting.
    Falls back to allowing requests if Redis is unavailable.
    """

    def __init__(
        self,
        requests_per_minute: int = 60,
        scope: str = "api",
    ):
        self.requests_per_minute = requests_per_minute
        self.scope = scope

    async def __call__(
        self,
        request: Request,
        redis: RedisService = Depends(get_redis_service),
    ) -> None:
        """
        Check rate limit for the current request.

        Raises HTTPException 429 if rate limit exceeded.
        """
        identity = get_voter_identity(request)

        is_allowed, remaining = await redis.check_rate_limit(
            identifier=rate_limit_key(self.scope, identity),
            limit=self.requests_per_minute,
            window_seconds=60,
        )

        if not is_allowed:
            logger.warning(
                "rate_limit_exceeded",
                scope=self.scope,
                limit=self.requests_per_minute,
            )
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Rate limit exceeded. Please try again later.",
                headers={
                    "Retry-After": "60",
                    "X-RateLimit-Limit": str(self.requests_per_minute),
                    "X-RateLimit-Remaining": "0",
                },
            )

        request.state.rate_limit_remaining = remaining
        request.state.rate_limit_limit = self.requests_per_minute


# Pre-configured rate limiters
rate_limit_default = RateLimiter(requests_per_minute=settings.RATE_LIMIT_PER_MINUTE)
rate_limit_submit = RateLimiter(
    requests_per_minute=settings.SUBMIT_RATE_LIMIT_PER_MINUTE, scope="submit"
)
