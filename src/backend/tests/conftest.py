"""
Pytest fixtures for Flash Survey backend tests.
"""

import os
from collections.abc import AsyncGenerator, Callable, Iterator
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

# Set test environment variables before importing app
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-supabase-jwt-secret-for-testing")
os.environ.setdefault("ENABLE_CACHE_SWEEP", "false")

# Client methods RedisService awaits directly
REDIS_COMMANDS = (
    "get",
    "set",
    "incr",
    "expire",
    "lpush",
    "delete",
    "ping",
    "zremrangebyscore",
    "zadd",
    "zcard",
)


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
async def fake_redis() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """In-memory Redis client on a server private to the test."""
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def redis_service(fake_redis: fakeredis.FakeAsyncRedis) -> Any:
    """RedisService wrapping the in-memory client."""
    from services.redis_service import RedisService

    return RedisService(client=fake_redis, timeout_seconds=1.0)


@pytest.fixture
def redis_outage(fake_redis: fakeredis.FakeAsyncRedis) -> Iterator[Callable[[], None]]:
    """
    Return a switch that makes every Redis command fail with a connection
    error for the rest of the test.
    """
    error = RedisConnectionError("Connection refused")

    with ExitStack() as stack:

        def _go_down() -> None:
            for command in REDIS_COMMANDS:
                stack.enter_context(
                    patch.object(fake_redis, command, AsyncMock(side_effect=error))
                )
            stack.enter_context(
                patch.object(fake_redis, "scan_iter", MagicMock(side_effect=error))
            )

        yield _go_down


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """Create mock database session."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.close = AsyncMock()
    session.execute = AsyncMock()
    return session


@pytest.fixture
def survey_repo() -> AsyncMock:
    """Mock SurveyRepository."""
    repo = AsyncMock()
    repo.find_by_token = AsyncMock(return_value=None)
    repo.get_for_admin = AsyncMock(return_value=None)
    repo.is_owned_by = AsyncMock(return_value=False)
    repo.list_for_admin = AsyncMock(return_value=[])
    return repo


@pytest.fixture
def response_repo() -> AsyncMock:
    """Mock ResponseRepository with no recorded submissions."""
    repo = AsyncMock()
    repo.count_distinct_submissions = AsyncMock(return_value=0)
    repo.count_distinct_submissions_for = AsyncMock(return_value={})
    repo.insert_responses = AsyncMock(return_value=None)
    repo.option_counts = AsyncMock(return_value={})
    return repo


@pytest.fixture
def make_survey() -> Callable[..., Any]:
    """
    Factory for transient Survey models with questions and options.

    ``questions`` is a list of (question_text, [option_text, ...], required).
    """
    from models.survey import Question, QuestionOption, Survey

    def _make(
        *,
        survey_id: Optional[str] = None,
        public_token: str = "token-abc",
        admin_id: str = "admin-1",
        is_active: bool = True,
        max_votes: int = 100,
        expires_at: Optional[datetime] = None,
        questions: Optional[list[tuple[str, list[str], bool]]] = None,
    ) -> Survey:
        now = datetime.now(timezone.utc)
        sid = survey_id or str(uuid4())
        if questions is None:
            questions = [
                ("Favourite colour?", ["Red", "Blue"], True),
                ("Tabs or spaces?", ["Tabs", "Spaces", "Both"], False),
            ]

        survey = Survey(
            id=sid,
            admin_id=admin_id,
            title="Team lunch",
            description="Quick poll",
            public_token=public_token,
            is_active=is_active,
            max_votes=max_votes,
            expires_at=expires_at or now + timedelta(days=3),
            created_at=now,
            updated_at=now,
        )
        for index, (text, options, required) in enumerate(questions):
            qid = f"{sid}-q{index}"
            survey.questions.append(
                Question(
                    id=qid,
                    survey_id=sid,
                    question_text=text,
                    question_type="radio",
                    order_index=index,
                    required=required,
                    options=[
                        QuestionOption(
                            id=f"{qid}-o{position}",
                            question_id=qid,
                            option_text=option,
                            position=position,
                        )
                        for position, option in enumerate(options)
                    ],
                )
            )
        return survey

    return _make


@pytest.fixture
def admin_user() -> Any:
    """Transient admin user."""
    from models.admin_user import AdminUser

    return AdminUser(id="admin-1", email="admin@example.com", name="Admin")


@pytest.fixture
async def app() -> Any:
    """Create FastAPI application for testing."""
    from main import app as fastapi_app

    return fastapi_app


@pytest.fixture
async def client(
    app: Any,
    redis_service: Any,
    mock_db_session: AsyncMock,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async test client with the database session and Redis replaced by
    in-process fakes.
    """
    from api.deps import get_redis_service
    from db.session import get_db

    async def _get_db() -> AsyncGenerator[AsyncMock, None]:
        yield mock_db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_redis_service] = lambda: redis_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict[str, str]:
    """Bearer header carrying a valid Supabase access token."""
    from jose import jwt

    token = jwt.encode(
        {
            "sub": "supabase-user-1",
            "email": "admin@example.com",
            "aud": "authenticated",
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
            "user_metadata": {"full_name": "Admin"},
        },
        os.environ["SUPABASE_JWT_SECRET"],
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}
