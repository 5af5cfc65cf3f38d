"""
Response submission schemas.

Field names follow the snake_case wire format; camelCase aliases are
accepted on input.
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class AnswerIn(BaseModel):
    """One chosen option for one question."""

    question_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("question_id", "questionId")
    )
    option_id: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("option_id", "optionId")
    )


class SubmitResponseRequest(BaseModel):
    """Body of ``POST /submit-response``."""

    model_config = ConfigDict(populate_by_name=True)

    survey_token: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("survey_token", "surveyToken")
    )
    responses: list[AnswerIn] = Field(..., min_length=1)


class SubmissionResult(BaseModel):
    """Successful submission."""

    success: bool = True
    message: str = "Response submitted successfully"
    submission_id: str
    degraded: bool = Field(
        False, description="True when vote admission could not be checked"
    )
    remaining_slots: Optional[int] = None


class RejectionDetail(BaseModel):
    """Body of a 429 admission rejection."""

    error: str
    reason: str
    retry_after: Optional[int] = None
