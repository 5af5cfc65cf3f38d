"""
Response submission endpoint.

One submission per client IP per survey, admitted through the vote gate
before anything is written.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import get_submission_service, get_voter_identity, rate_limit_submit
from schemas.response import RejectionDetail, SubmissionResult, SubmitResponseRequest
from services.exceptions import (
    AdmissionRejectedError,
    InvalidRequestError,
    SubmissionPersistenceError,
    SurveyClosedError,
    SurveyNotFoundError,
)
from services.submission_service import SubmissionService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post(
    "/submit-response",
    response_model=SubmissionResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit_submit)],
)
async def submit_response(
    request: SubmitResponseRequest,
    voter_identity: str = Depends(get_voter_identity),
    service: SubmissionService = Depends(get_submission_service),
) -> SubmissionResult:
    """
    Submit answers to a survey.

    Status codes:
    - 400: an answer does not match the survey's questions or options
    - 404: unknown survey token
    - 410: survey inactive, expired or full
    - 429: this IP already voted, or the survey's vote limit was reached
    - 500: responses could not be saved
    """
    try:
        return await service.submit(request, voter_identity)
    except SurveyNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except SurveyClosedError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=e.message)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except AdmissionRejectedError as e:
        headers = {"Retry-After": str(e.retry_after)} if e.retry_after else None
        detail = RejectionDetail(error=e.message, reason=e.reason, retry_after=e.retry_after)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail.model_dump(),
            headers=headers,
        )
    except SubmissionPersistenceError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save responses",
        )
