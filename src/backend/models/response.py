"""
Response model.

One row per answered question. All rows written for one respondent share a
``submission_id``; submissions are counted by distinct ``submission_id``.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, ForeignKey, Index, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class Response(Base):
    """Append-only answer row."""

    __tablename__ = "responses"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    survey_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("surveys.id", ondelete="CASCADE"),
        index=True,
    )
    question_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("questions.id", ondelete="CASCADE"),
    )
    option_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("question_options.id", ondelete="CASCADE"),
    )
    submission_id: Mapped[str] = mapped_column(UUID(as_uuid=False))

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_responses_survey_submission", "survey_id", "submission_id"),
        Index("ix_responses_survey_question_option", "survey_id", "question_id", "option_id"),
    )
