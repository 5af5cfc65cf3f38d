"""
Survey analytics for the owning admin.

Ownership is checked against the database on every request; only the
aggregation itself is served from the cache.
"""

from datetime import datetime, timezone
from typing import Optional

from core.config import settings
from models.survey import Survey
from repositories.response_repository import ResponseRepository
from repositories.survey_repository import SurveyRepository
from schemas.analytics import (
    AnalyticsStats,
    AnalyticsSurvey,
    OptionAnalytics,
    QuestionAnalytics,
    SurveyAnalytics,
)
from services.cache_keys import analytics_key
from services.exceptions import SurveyNotFoundError
from services.survey_cache import CacheResult, SurveyCache


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(part / whole * 100, 2)


def build_analytics(
    survey: Survey,
    option_counts: dict[tuple[str, str], int],
    total_submissions: int,
    now: Optional[datetime] = None,
) -> SurveyAnalytics:
    """Per-option counts and percentages, relative to distinct submissions."""
    now = now or datetime.now(timezone.utc)
    is_expired = survey.is_expired(now)
    response_rate = _percent(total_submissions, survey.max_votes)

    questions = []
    for question in sorted(survey.questions, key=lambda q: q.order_index):
        options = []
        for option in sorted(question.options, key=lambda o: o.position):
            count = option_counts.get((str(question.id), str(option.id)), 0)
            options.append(
                OptionAnalytics(
                    option_id=str(option.id),
                    option_text=option.option_text,
                    count=count,
                    percentage=_percent(count, total_submissions),
                )
            )
        questions.append(
            QuestionAnalytics(
                question_id=str(question.id),
                question_text=question.question_text,
                order_index=question.order_index,
                required=question.required,
                total_responses=total_submissions,
                options=options,
            )
        )

    return SurveyAnalytics(
        survey=AnalyticsSurvey(
            id=str(survey.id),
            title=survey.title,
            description=survey.description,
            created_at=survey.created_at,
            updated_at=survey.updated_at,
            expires_at=survey.expires_at,
            public_token=survey.public_token,
            is_active=survey.is_active,
            total_votes=total_submissions,
            max_votes=survey.max_votes,
            is_expired=is_expired,
            response_rate=response_rate,
        ),
        questions=questions,
        stats=AnalyticsStats(
            total_responses=total_submissions,
            response_rate=response_rate,
            is_expired=is_expired,
            completion_percentage=response_rate,
        ),
    )


class AnalyticsService:
    """Analytics reads, cache first."""

    def __init__(
        self,
        surveys: SurveyRepository,
        responses: ResponseRepository,
        cache: SurveyCache,
    ):
        self.surveys = surveys
        self.responses = responses
        self.cache = cache

    async def get_analytics(self, survey_id: str, admin_id: str) -> CacheResult[SurveyAnalytics]:
        """
        Raises:
            SurveyNotFoundError: unknown survey or not owned by the admin
        """
        if not await self.surveys.is_owned_by(survey_id, admin_id):
            raise SurveyNotFoundError("Survey not found or access denied")

        async def load() -> Optional[SurveyAnalytics]:
            survey = await self.surveys.get_for_admin(survey_id, admin_id)
            if survey is None:
                return None
            total = await self.responses.count_distinct_submissions(survey_id)
            counts = await self.responses.option_counts(survey_id)
            return build_analytics(survey, counts, total)

        result = await self.cache.get_or_load(
            analytics_key(survey_id),
            load,
            settings.ANALYTICS_CACHE_TTL_SECONDS,
            model=SurveyAnalytics,
        )
        if result is None:
            raise SurveyNotFoundError("Survey not found or access denied")
        return result
