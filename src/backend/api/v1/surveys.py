"""
Survey endpoints.

The public form is fetched by token without authentication; creation,
listing and analytics require an admin bearer token.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import (
    get_analytics_service,
    get_current_admin,
    get_survey_service,
    rate_limit_default,
)
from models.admin_user import AdminUser
from schemas.analytics import SurveyAnalyticsResponse
from schemas.survey import (
    SurveyCreate,
    SurveyCreatedResponse,
    SurveyListResponse,
    SurveyViewResponse,
)
from services.analytics_service import AnalyticsService
from services.exceptions import InvalidRequestError, SurveyClosedError, SurveyNotFoundError
from services.survey_service import SurveyService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/survey-by-token/{token}", response_model=SurveyViewResponse)
async def get_survey_by_token(
    token: str,
    service: SurveyService = Depends(get_survey_service),
) -> SurveyViewResponse:
    """
    Get the public survey form.

    Served from the cache when possible; ``cached`` reports which.
    Returns 410 once the survey is inactive, expired or full.
    """
    try:
        result = await service.get_public_view(token)
    except SurveyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except SurveyClosedError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=e.message)

    return SurveyViewResponse(data=result.value, cached=result.cached)


@router.get("/survey-analytics/{survey_id}", response_model=SurveyAnalyticsResponse)
async def get_survey_analytics(
    survey_id: str,
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    service: AnalyticsService = Depends(get_analytics_service),
) -> SurveyAnalyticsResponse:
    """Get per-option counts and percentages for a survey the admin owns."""
    try:
        result = await service.get_analytics(survey_id, str(admin.id))
    except SurveyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    return SurveyAnalyticsResponse(data=result.value, cached=result.cached)


@router.get("/surveys", response_model=SurveyListResponse)
async def list_surveys(
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    service: SurveyService = Depends(get_survey_service),
) -> SurveyListResponse:
    """List the admin's surveys, newest first."""
    surveys = await service.list_surveys(admin)
    return SurveyListResponse(data=surveys)


@router.post(
    "/surveys",
    response_model=SurveyCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_default)],
)
async def create_survey(
    definition: SurveyCreate,
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    service: SurveyService = Depends(get_survey_service),
) -> SurveyCreatedResponse:
    """
    Create a survey.

    The survey expires after the configured lifetime and accepts up to the
    default number of responses.
    """
    try:
        created = await service.create_survey(admin, definition)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    return SurveyCreatedResponse(data=created)
