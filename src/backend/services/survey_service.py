"""
Survey creation, listing and the public survey view.

The public view is served through the survey cache and carries the
distinct submission count at load time, so ``total_votes`` may lag by up
to one cache TTL.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog

from core.config import settings
from core.security import generate_public_token
from models.admin_user import AdminUser
from models.survey import Survey
from repositories.response_repository import ResponseRepository
from repositories.survey_repository import SurveyRepository
from schemas.survey import (
    OptionView,
    QuestionView,
    SurveyCreate,
    SurveyCreated,
    SurveyListItem,
    SurveyView,
)
from services.cache_keys import survey_by_token_key, survey_expiry_key
from services.exceptions import InvalidRequestError, SurveyClosedError, SurveyNotFoundError
from services.redis_service import RedisService, RedisUnavailableError
from services.survey_cache import CacheResult, SurveyCache

logger = structlog.get_logger(__name__)


def survey_to_view(survey: Survey, total_votes: int) -> SurveyView:
    """Project a survey with its questions and options into the public view."""
    questions = sorted(survey.questions, key=lambda q: q.order_index)
    return SurveyView(
        id=str(survey.id),
        title=survey.title,
        description=survey.description,
        expires_at=survey.expires_at,
        is_active=survey.is_active,
        max_votes=survey.max_votes,
        total_votes=total_votes,
        questions=[
            QuestionView(
                id=str(q.id),
                question_text=q.question_text,
                order_index=q.order_index,
                required=q.required,
                question_options=[
                    OptionView(id=str(o.id), option_text=o.option_text)
                    for o in sorted(q.options, key=lambda o: o.position)
                ],
            )
            for q in questions
        ],
    )


def ensure_accepting(view: SurveyView, now: Optional[datetime] = None) -> None:
    """
    Raise ``SurveyClosedError`` unless the survey is open.

    Open means active, ``now < expires_at`` and below the response ceiling.
    """
    now = now or datetime.now(timezone.utc)
    if not view.is_active:
        raise SurveyClosedError(SurveyClosedError.INACTIVE)
    if view.expires_at <= now:
        raise SurveyClosedError(SurveyClosedError.EXPIRED)
    if view.total_votes >= view.max_votes:
        raise SurveyClosedError(SurveyClosedError.FULL)


class SurveyService:
    """Survey reads and writes used by the survey routers."""

    def __init__(
        self,
        surveys: SurveyRepository,
        responses: ResponseRepository,
        cache: SurveyCache,
        redis_service: RedisService,
    ):
        self.surveys = surveys
        self.responses = responses
        self.cache = cache
        self.redis = redis_service

    async def get_public_view(self, public_token: str) -> CacheResult[SurveyView]:
        """
        Get the survey form for a public token, cache first.

        Raises:
            SurveyNotFoundError: no survey has this token
            SurveyClosedError: inactive, expired or full
        """

        async def load() -> Optional[SurveyView]:
            survey = await self.surveys.find_by_token(public_token)
            if survey is None:
                return None
            total = await self.responses.count_distinct_submissions(str(survey.id))
            return survey_to_view(survey, total)

        result = await self.cache.get_or_load(
            survey_by_token_key(public_token),
            load,
            settings.SURVEY_CACHE_TTL_SECONDS,
            model=SurveyView,
        )
        if result is None:
            raise SurveyNotFoundError()

        ensure_accepting(result.value)
        return result

    async def create_survey(self, admin: AdminUser, definition: SurveyCreate) -> SurveyCreated:
        """Create a survey with the default lifetime and response ceiling."""
        if len(definition.questions) > settings.MAX_QUESTIONS_PER_SURVEY:
            raise InvalidRequestError(
                f"Maximum {settings.MAX_QUESTIONS_PER_SURVEY} questions allowed"
            )

        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.SURVEY_LIFETIME_DAYS)
        survey = await self.surveys.create_with_questions(
            admin_id=str(admin.id),
            definition=definition,
            public_token=generate_public_token(),
            expires_at=expires_at,
            max_votes=settings.DEFAULT_MAX_RESPONSES,
        )
        logger.info("survey_created", survey_id=str(survey.id), admin_id=str(admin.id))

        await self._register_expiry(str(survey.id), expires_at)

        return SurveyCreated(
            id=str(survey.id),
            title=survey.title,
            description=survey.description,
            public_token=survey.public_token,
            expires_at=survey.expires_at,
            is_active=survey.is_active,
            max_votes=survey.max_votes,
            created_at=survey.created_at,
        )

    async def list_surveys(self, admin: AdminUser) -> list[SurveyListItem]:
        """The admin's surveys, newest first, with submission totals."""
        surveys = await self.surveys.list_for_admin(str(admin.id))
        totals = await self.responses.count_distinct_submissions_for(str(s.id) for s in surveys)
        now = datetime.now(timezone.utc)

        return [
            SurveyListItem(
                id=str(s.id),
                title=s.title,
                description=s.description,
                created_at=s.created_at,
                updated_at=s.updated_at,
                expires_at=s.expires_at,
                public_token=s.public_token,
                is_active=s.is_active,
                total_votes=totals.get(str(s.id), 0),
                max_votes=s.max_votes,
                question_count=len(s.questions or []),
                is_expired=s.is_expired(now),
            )
            for s in surveys
        ]

    async def _register_expiry(self, survey_id: str, expires_at: datetime) -> None:
        """Record the expiry in Redis so the sweep can clear the survey's keys."""
        # Keep the marker a day past expiry so the sweep still sees it.
        ttl = int((expires_at - datetime.now(timezone.utc)).total_seconds()) + 86400
        try:
            await self.redis.set(
                survey_expiry_key(survey_id),
                str(int(expires_at.timestamp() * 1000)),
                max(ttl, 1),
            )
        except RedisUnavailableError as e:
            logger.warning("survey_expiry_register_failed", survey_id=survey_id, error=str(e))
