"""
API v1 router aggregating all endpoints.
"""

from fastapi import APIRouter

from api.v1.responses import router as responses_router
from api.v1.surveys import router as surveys_router

router = APIRouter()

router.include_router(surveys_router, tags=["Surveys"])
router.include_router(responses_router, tags=["Responses"])
