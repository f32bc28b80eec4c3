"""
Exam Review - Test Configuration
Pytest fixtures and configuration for testing
"""
import os

# Keep the app's module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any, Callable

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from exam_review.core.database import Base, get_db
from exam_review.main import app
from exam_review.services.review import QuestionLocks, ReviewService
from exam_review.services.review_repository import (
    InMemoryReviewItemRepository,
    InMemoryReviewSessionRepository,
)
from exam_review.services.spaced_repetition import ReviewItem


# Test database URL (in-memory SQLite shared across one test's connections)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    test_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def file_session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a file database, for tests that need separate connections."""
    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'review.db'}", echo=False)

    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)

    await file_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for scheduling tests."""
    return datetime(2023, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_item(now: datetime) -> Callable[..., ReviewItem]:
    """Factory for review items that are due at ``now`` unless overridden."""

    def _make(question_id: str = "q-1", **overrides: Any) -> ReviewItem:
        values: dict[str, Any] = {
            "question_id": question_id,
            "next_review": now,
            "last_reviewed": now,
            "review_count": 1,
            "priority": 3,
        }
        values.update(overrides)
        return ReviewItem(**values)

    return _make


@pytest.fixture
def memory_service() -> ReviewService:
    """Review service over in-memory repositories."""
    return ReviewService(
        items=InMemoryReviewItemRepository(),
        sessions=InMemoryReviewSessionRepository(),
        locks=QuestionLocks(),
    )


@pytest.fixture
def sample_answer_data() -> dict[str, Any]:
    """Sample wrong answer payload."""
    return {
        "question_id": "q-math-001",
        "is_correct": False,
        "answered_at": "2023-01-01T12:00:00Z",
        "time_spent": 45,
        "device_type": "mobile",
    }
