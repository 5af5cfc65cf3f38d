"""
Survey, question and option models.

A survey and its questions/options are created together and never edited
afterwards. Responses reference them but live in their own table.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base


class Survey(Base):
    """
    A short-lived multiple-choice survey.

    A survey accepts responses only while ``is_active`` is set, ``expires_at``
    is strictly in the future and fewer than ``max_votes`` distinct
    submissions have been recorded.
    """

    __tablename__ = "surveys"

    __table_args__ = (
        Index("ix_surveys_admin_created", "admin_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    admin_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("admin_users.id", ondelete="CASCADE"),
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Opaque token used in the public link; never the primary key
    public_token: Mapped[str] = mapped_column(String(64), unique=True, index=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    max_votes: Mapped[int] = mapped_column(Integer, default=100)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    admin = relationship("AdminUser", back_populates="surveys")
    questions = relationship(
        "Question",
        back_populates="survey",
        cascade="all, delete-orphan",
        order_by="Question.order_index",
    )

    def is_expired(self, now: datetime | None = None) -> bool:
        """A survey whose expiry equals the current instant is expired."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now


class Question(Base):
    """A single-choice question belonging to one survey."""

    __tablename__ = "questions"

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

    question_text: Mapped[str] = mapped_column(Text)
    question_type: Mapped[str] = mapped_column(String(20), default="radio")
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    required: Mapped[bool] = mapped_column(Boolean, default=True)

    survey = relationship("Survey", back_populates="questions")
    options = relationship(
        "QuestionOption",
        back_populates="question",
        cascade="all, delete-orphan",
        order_by="QuestionOption.position",
    )


class QuestionOption(Base):
    """An answer choice for a question."""

    __tablename__ = "question_options"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    question_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("questions.id", ondelete="CASCADE"),
        index=True,
    )

    option_text: Mapped[str] = mapped_column(Text)
    # Creation order; options are displayed in the order they were defined
    position: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )

    question = relationship("Question", back_populates="options")
