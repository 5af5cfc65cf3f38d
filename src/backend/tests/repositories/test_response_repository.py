"""
Tests for response repository.
"""

from collections import namedtuple
from unittest.mock import AsyncMock, MagicMock

import pytest

from repositories.response_repository import ResponseRepository, ResponseRow

OptionCountRow = namedtuple("OptionCountRow", ["question_id", "option_id", "count"])


@pytest.fixture
def mock_session():
    """Create a mock database session."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.add_all = MagicMock()
    return session


def _rows(count: int) -> list[ResponseRow]:
    return [
        ResponseRow(
            survey_id="s1",
            question_id=f"q{n}",
            option_id=f"o{n}",
            submission_id="sub-1",
        )
        for n in range(count)
    ]


@pytest.mark.unit
class TestResponseRepositoryCounts:
    """Aggregate queries."""

    async def test_count_distinct_submissions(self, mock_session) -> None:
        """Test that distinct submissions are counted."""
        mock_result = MagicMock()
        mock_result.scalar = MagicMock(return_value=7)
        mock_session.execute = AsyncMock(return_value=mock_result)

        assert await ResponseRepository(mock_session).count_distinct_submissions("s1") == 7

    async def test_count_distinct_submissions_empty(self, mock_session) -> None:
        """Test that a survey without rows counts zero."""
        mock_result = MagicMock()
        mock_result.scalar = MagicMock(return_value=None)
        mock_session.execute = AsyncMock(return_value=mock_result)

        assert await ResponseRepository(mock_session).count_distinct_submissions("s1") == 0

    async def test_counts_for_several_surveys(self, mock_session) -> None:
        """Test that surveys without rows are filled in with zero."""
        mock_result = MagicMock()
        mock_result.all = MagicMock(return_value=[("s1", 4)])
        mock_session.execute = AsyncMock(return_value=mock_result)

        counts = await ResponseRepository(mock_session).count_distinct_submissions_for(
            ["s1", "s2"]
        )

        assert counts == {"s1": 4, "s2": 0}

    async def test_counts_for_no_surveys_skips_query(self, mock_session) -> None:
        """Test that an empty id list runs no query."""
        counts = await ResponseRepository(mock_session).count_distinct_submissions_for([])

        assert counts == {}
        mock_session.execute.assert_not_awaited()

    async def test_option_counts(self, mock_session) -> None:
        """Test that option counts are keyed by question and option."""
        mock_result = MagicMock()
        mock_result.all = MagicMock(
            return_value=[
                OptionCountRow("q1", "o1", 3),
                OptionCountRow("q1", "o2", 1),
            ]
        )
        mock_session.execute = AsyncMock(return_value=mock_result)

        counts = await ResponseRepository(mock_session).option_counts("s1")

        assert counts == {("q1", "o1"): 3, ("q1", "o2"): 1}


@pytest.mark.unit
class TestInsertResponses:
    """Submission inserts."""

    async def test_inserts_all_rows_in_one_commit(self, mock_session) -> None:
        """Test that all answer rows are committed together."""
        await ResponseRepository(mock_session).insert_responses(_rows(3))

        added = mock_session.add_all.call_args[0][0]
        assert len(added) == 3
        assert {r.submission_id for r in added} == {"sub-1"}
        mock_session.commit.assert_awaited_once()

    async def test_empty_submission_rejected(self, mock_session) -> None:
        """Test that an empty submission raises ValueError."""
        with pytest.raises(ValueError):
            await ResponseRepository(mock_session).insert_responses([])

        mock_session.add_all.assert_not_called()

    async def test_failure_rolls_back_and_raises(self, mock_session) -> None:
        """Test that a failed commit rolls back and re-raises."""
        mock_session.commit = AsyncMock(side_effect=RuntimeError("connection lost"))

        with pytest.raises(RuntimeError):
            await ResponseRepository(mock_session).insert_responses(_rows(2))

        mock_session.rollback.assert_awaited_once()
