"""
Survey analytics schemas.

Percentages are relative to the number of distinct submissions.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class OptionAnalytics(BaseModel):
    option_id: str
    option_text: str
    count: int
    percentage: float


class QuestionAnalytics(BaseModel):
    question_id: str
    question_text: str
    order_index: int
    required: bool
    total_responses: int
    options: list[OptionAnalytics]


class AnalyticsSurvey(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    expires_at: datetime
    public_token: str
    is_active: bool
    total_votes: int
    max_votes: int
    is_expired: bool
    response_rate: float


class AnalyticsStats(BaseModel):
    total_responses: int
    response_rate: float
    is_expired: bool
    completion_percentage: float


class SurveyAnalytics(BaseModel):
    """Cached analytics projection stored under ``analytics:survey:{id}``."""

    survey: AnalyticsSurvey
    questions: list[QuestionAnalytics]
    stats: AnalyticsStats


class SurveyAnalyticsResponse(BaseModel):
    success: bool = True
    data: SurveyAnalytics
    cached: bool = False
