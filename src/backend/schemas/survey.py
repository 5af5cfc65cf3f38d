"""
Survey-related Pydantic schemas.

``SurveyView`` doubles as the cached read projection stored under
``survey:token:{token}``: it is serialized with ``model_dump_json()`` and
re-validated on every cache hit.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class QuestionCreate(BaseModel):
    """A question in a survey definition."""

    question_text: str = Field(..., min_length=1, max_length=500)
    options: list[str] = Field(..., min_length=2, max_length=10)
    required: bool = True
    order_index: Optional[int] = Field(None, ge=0)

    @field_validator("question_text")
    @classmethod
    def strip_question_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question_text must not be blank")
        return v

    @field_validator("options")
    @classmethod
    def validate_options(cls, v: list[str]) -> list[str]:
        cleaned = [option.strip() for option in v]
        if any(not option for option in cleaned):
            raise ValueError("options must not be blank")
        return cleaned


class SurveyCreate(BaseModel):
    """Schema for creating a survey with its questions."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    questions: list[QuestionCreate] = Field(..., min_length=1)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title must not be blank")
        return v


class SurveyCreated(BaseModel):
    """Survey returned after creation."""

    id: str
    title: str
    description: Optional[str] = None
    public_token: str
    expires_at: datetime
    is_active: bool
    max_votes: int
    created_at: Optional[datetime] = None


class OptionView(BaseModel):
    """Public view of an answer option."""

    id: str
    option_text: str


class QuestionView(BaseModel):
    """Public view of a question with its options in creation order."""

    id: str
    question_text: str
    order_index: int
    required: bool
    question_options: list[OptionView]


class SurveyView(BaseModel):
    """Denormalized survey projection served on the public form."""

    id: str
    title: str
    description: Optional[str] = None
    expires_at: datetime
    is_active: bool
    max_votes: int
    total_votes: int = 0
    questions: list[QuestionView]


class SurveyViewResponse(BaseModel):
    """Envelope for ``GET /survey-by-token/{token}``."""

    success: bool = True
    data: SurveyView
    cached: bool = False


class SurveyListItem(BaseModel):
    """Survey summary shown on the admin dashboard."""

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
    question_count: int
    is_expired: bool


class SurveyListResponse(BaseModel):
    """Envelope for the admin survey list."""

    success: bool = True
    data: list[SurveyListItem]


class SurveyCreatedResponse(BaseModel):
    """Envelope for survey creation."""

    success: bool = True
    data: SurveyCreated
