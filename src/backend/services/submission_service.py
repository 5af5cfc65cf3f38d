"""
Response submission.

Flow for one request:

1. load the survey by token and check it is open
2. check the ceiling against the database's distinct submission count
3. validate the answers against the survey definition
4. ask the vote admission gate
5. insert every response row under one new submission id
6. record the admission in Redis (best-effort)

Nothing user-visible is written before step 5, so a client may safely
resubmit after any failure.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

import structlog

from core.config import settings
from models.survey import Survey
from repositories.response_repository import ResponseRepository, ResponseRow
from repositories.survey_repository import SurveyRepository
from schemas.response import AnswerIn, SubmissionResult, SubmitResponseRequest
from services.exceptions import (
    AdmissionRejectedError,
    InvalidRequestError,
    SubmissionPersistenceError,
    SurveyClosedError,
    SurveyNotFoundError,
)
from services.vote_gate import Admitted, RejectedDuplicate, VoteAdmissionGate

logger = structlog.get_logger(__name__)


def validate_answers(survey: Survey, answers: list[AnswerIn]) -> None:
    """
    Check answers against the survey's questions and options.

    Raises:
        InvalidRequestError: unknown question/option, a question answered
            twice, or a required question left unanswered
    """
    questions = {str(q.id): q for q in survey.questions}
    answered: set[str] = set()

    for answer in answers:
        question = questions.get(answer.question_id)
        if question is None:
            raise InvalidRequestError("Invalid question ID")

        if answer.question_id in answered:
            raise InvalidRequestError("Duplicate response for question")
        answered.add(answer.question_id)

        if answer.option_id not in {str(o.id) for o in question.options}:
            raise InvalidRequestError("Invalid option ID")

    missing = [qid for qid, q in questions.items() if q.required and qid not in answered]
    if missing:
        raise InvalidRequestError("Missing responses for required questions")


class SubmissionService:
    """Orchestrates admission, persistence and admission bookkeeping."""

    def __init__(
        self,
        surveys: SurveyRepository,
        responses: ResponseRepository,
        gate: VoteAdmissionGate,
    ):
        self.surveys = surveys
        self.responses = responses
        self.gate = gate

    async def submit(
        self,
        request: SubmitResponseRequest,
        voter_identity: str,
        now: Optional[datetime] = None,
    ) -> SubmissionResult:
        now = now or datetime.now(timezone.utc)

        survey = await self.surveys.find_by_token(request.survey_token)
        if survey is None:
            raise SurveyNotFoundError()

        if not survey.is_active:
            raise SurveyClosedError(SurveyClosedError.INACTIVE)
        if survey.is_expired(now):
            raise SurveyClosedError(SurveyClosedError.EXPIRED)

        survey_id = str(survey.id)
        submitted = await self.responses.count_distinct_submissions(survey_id)
        if submitted >= survey.max_votes:
            raise SurveyClosedError(SurveyClosedError.FULL)

        validate_answers(survey, request.responses)

        decision = await self.gate.evaluate(survey_id, voter_identity, survey.max_votes)
        if not isinstance(decision, Admitted):
            retry_after = (
                settings.VOTER_RECORD_TTL_SECONDS
                if isinstance(decision, RejectedDuplicate)
                else None
            )
            raise AdmissionRejectedError(decision.reason, decision.message, retry_after)

        submission_id = str(uuid4())
        rows = [
            ResponseRow(
                survey_id=survey_id,
                question_id=answer.question_id,
                option_id=answer.option_id,
                submission_id=submission_id,
            )
            for answer in request.responses
        ]
        try:
            await self.responses.insert_responses(rows)
        except Exception as e:
            logger.exception("response_insert_failed", survey_id=survey_id, error=str(e))
            raise SubmissionPersistenceError("Failed to save responses") from e

        await self.gate.commit(
            survey_id,
            voter_identity,
            submission_id,
            {
                "submission_id": submission_id,
                "responses": [answer.model_dump() for answer in request.responses],
                "submitted_at": now.isoformat(),
            },
        )

        logger.info(
            "submission_recorded",
            survey_id=survey_id,
            submission_id=submission_id,
            degraded=decision.degraded,
        )
        return SubmissionResult(
            submission_id=submission_id,
            degraded=decision.degraded,
            remaining_slots=None if decision.degraded else max(0, decision.remaining_slots - 1),
        )
