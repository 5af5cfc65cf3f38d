"""
Survey repository for database operations.
"""

from datetime import datetime
from typing import Optional
from uuid import uuid4

import structlog
from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models.survey import Question, QuestionOption, Survey
from schemas.survey import SurveyCreate

logger = structlog.get_logger(__name__)


class SurveyRepository:
    """Repository for survey database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _with_questions(self):
        return selectinload(Survey.questions).selectinload(Question.options)

    async def find_by_token(self, public_token: str) -> Optional[Survey]:
        """
        Get a survey by its public token with questions and options.

        Active/expiry/quota checks are left to the caller.
        """
        result = await self.db.execute(
            select(Survey)
            .options(self._with_questions())
            .where(Survey.public_token == public_token)
        )
        return result.scalar_one_or_none()

    async def get_for_admin(self, survey_id: str, admin_id: str) -> Optional[Survey]:
        """Get a survey owned by the given admin."""
        result = await self.db.execute(
            select(Survey)
            .options(self._with_questions())
            .where(and_(Survey.id == survey_id, Survey.admin_id == admin_id))
        )
        return result.scalar_one_or_none()

    async def is_owned_by(self, survey_id: str, admin_id: str) -> bool:
        """Check survey ownership without loading the survey."""
        result = await self.db.execute(
            select(func.count(Survey.id)).where(
                and_(Survey.id == survey_id, Survey.admin_id == admin_id)
            )
        )
        count = result.scalar() or 0
        return count > 0

    async def list_for_admin(self, admin_id: str) -> list[Survey]:
        """List an admin's surveys, newest first."""
        result = await self.db.execute(
            select(Survey)
            .options(selectinload(Survey.questions))
            .where(Survey.admin_id == admin_id)
            .order_by(Survey.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_with_questions(
        self,
        admin_id: str,
        definition: SurveyCreate,
        public_token: str,
        expires_at: datetime,
        max_votes: int,
    ) -> Survey:
        """
        Create a survey with its questions and options in one transaction.

        Either every row is committed or none is, so a failure part-way
        never leaves a partial survey reachable by its public token.
        """
        survey = Survey(
            id=str(uuid4()),
            admin_id=admin_id,
            title=definition.title,
            description=definition.description,
            public_token=public_token,
            expires_at=expires_at,
            max_votes=max_votes,
            is_active=True,
        )

        for index, question_def in enumerate(definition.questions):
            question = Question(
                id=str(uuid4()),
                question_text=question_def.question_text,
                question_type="radio",
                order_index=(
                    question_def.order_index
                    if question_def.order_index is not None
                    else index
                ),
                required=question_def.required,
            )
            question.options = [
                QuestionOption(id=str(uuid4()), option_text=text, position=position)
                for position, text in enumerate(question_def.options)
            ]
            survey.questions.append(question)

        self.db.add(survey)
        try:
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error("survey_create_rolled_back", admin_id=admin_id)
            raise

        await self.db.refresh(survey, attribute_names=["created_at", "updated_at"])
        return survey
