"""
Response repository for database operations.

The distinct submission count computed here is the authoritative quota
check; the Redis counter kept by the vote gate is only advisory.
"""

from dataclasses import dataclass
from typing import Iterable
from uuid import uuid4

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.response import Response

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResponseRow:
    """One answer row to insert."""

    survey_id: str
    question_id: str
    option_id: str
    submission_id: str


class ResponseRepository:
    """Repository for response database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_distinct_submissions(self, survey_id: str) -> int:
        """Count distinct submissions (not rows) recorded for a survey."""
        result = await self.db.execute(
            select(func.count(func.distinct(Response.submission_id))).where(
                Response.survey_id == survey_id
            )
        )
        return result.scalar() or 0

    async def count_distinct_submissions_for(
        self, survey_ids: Iterable[str]
    ) -> dict[str, int]:
        """Distinct submission counts for several surveys in one query."""
        ids = list(survey_ids)
        if not ids:
            return {}

        result = await self.db.execute(
            select(
                Response.survey_id,
                func.count(func.distinct(Response.submission_id)),
            )
            .where(Response.survey_id.in_(ids))
            .group_by(Response.survey_id)
        )
        counts = {str(survey_id): count for survey_id, count in result.all()}
        return {survey_id: counts.get(survey_id, 0) for survey_id in ids}

    async def insert_responses(self, rows: list[ResponseRow]) -> None:
        """
        Insert every row of one submission as a single unit.

        Raises on failure after rolling back, so no partial submission is
        ever committed.
        """
        if not rows:
            raise ValueError("A submission must contain at least one response")

        self.db.add_all(
            [
                Response(
                    id=str(uuid4()),
                    survey_id=row.survey_id,
                    question_id=row.question_id,
                    option_id=row.option_id,
                    submission_id=row.submission_id,
                )
                for row in rows
            ]
        )
        try:
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            logger.error(
                "response_insert_rolled_back",
                survey_id=rows[0].survey_id,
                submission_id=rows[0].submission_id,
            )
            raise

    async def option_counts(self, survey_id: str) -> dict[tuple[str, str], int]:
        """
        Count responses per (question, option) for a survey.

        Returns: {(question_id, option_id): count}
        """
        result = await self.db.execute(
            select(
                Response.question_id,
                Response.option_id,
                func.count(Response.id).label("count"),
            )
            .where(Response.survey_id == survey_id)
            .group_by(Response.question_id, Response.option_id)
        )

        counts: dict[tuple[str, str], int] = {}
        for row in result.all():
            counts[(str(row.question_id), str(row.option_id))] = row[2]
        return counts
