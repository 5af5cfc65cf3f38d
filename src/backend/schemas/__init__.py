"""Schemas module initialization."""

from schemas.analytics import SurveyAnalytics, SurveyAnalyticsResponse
from schemas.response import AnswerIn, SubmissionResult, SubmitResponseRequest
from schemas.survey import (
    SurveyCreate,
    SurveyCreated,
    SurveyListItem,
    SurveyView,
    SurveyViewResponse,
)

__all__ = [
    "AnswerIn",
    "SubmitResponseRequest",
    "SubmissionResult",
    "SurveyCreate",
    "SurveyCreated",
    "SurveyListItem",
    "SurveyView",
    "SurveyViewResponse",
    "SurveyAnalytics",
    "SurveyAnalyticsResponse",
]
