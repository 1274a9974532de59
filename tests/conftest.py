"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database built from the models;
realtime publishing is disabled and grading is a deterministic stub.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import date
from typing import Any

os.environ["LEVELUP_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["LEVELUP_REDIS_URL"] = ""
os.environ["LEVELUP_JWT_SECRET"] = "test-secret"
os.environ["LEVELUP_GRADING_BASE_URL"] = ""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.config import get_settings

get_settings.cache_clear()

from levelup.auth.jwt import create_access_token  # noqa: E402
from levelup.database import close_db, get_engine, get_session, init_db  # noqa: E402
from levelup.db.base import Base  # noqa: E402
from levelup.db.models import Course, CourseModule, Problem, Topic  # noqa: E402
from levelup.progression.grading import AlgorithmVerdict, CodeVerdict, GradingService, get_grader  # noqa: E402

TODAY = date(2026, 3, 10)
LEARNER = "0b6f6c1e-1111-4c3a-9d55-000000000001"
OTHER_LEARNER = "0b6f6c1e-2222-4c3a-9d55-000000000002"


class StubGrader(GradingService):
    """Deterministic grader: verdicts are set by the test."""

    def __init__(self, algorithm_correct: bool = True, code_passes: bool = True) -> None:
        self.algorithm_correct = algorithm_correct
        self.code_passes = code_passes
        self.calls: list[tuple[str, str]] = []

    async def verify_algorithm(self, problem: Problem, explanation: str) -> AlgorithmVerdict:
        self.calls.append(("algorithm", problem.id))
        return AlgorithmVerdict(
            is_correct=self.algorithm_correct,
            feedback="Looks right" if self.algorithm_correct else "Misses the empty input case",
        )

    async def verify_code(self, problem: Problem, code: str, language: str) -> CodeVerdict:
        self.calls.append(("code", problem.id))
        return CodeVerdict(
            all_tests_passed=self.code_passes,
            test_results=[{"testCase": 1, "passed": self.code_passes}],
            feedback="All tests passed" if self.code_passes else "Test 1 failed",
        )


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh schema in an in-memory database, and a session on it."""
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async for session in get_session():
        yield session
        break

    await close_db()


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> dict[str, Any]:
    """One course, one module: topic-1 with an easy and a medium problem, topic-2 with none."""
    course = Course(id="course-1", title="Arrays 101", completion_reward_points=500)
    module = CourseModule(id="module-1", course_id=course.id, title="Basics", order=1)
    topic1 = Topic(id="topic-1", module_id=module.id, title="Two pointers", order=1)
    topic2 = Topic(id="topic-2", module_id=module.id, title="Reading", order=2)
    easy = Problem(id="problem-easy", topic_id=topic1.id, title="Pair sum", difficulty="easy")
    medium = Problem(id="problem-medium", topic_id=topic1.id, title="Three sum", difficulty="medium")
    db_session.add_all([course, module, topic1, topic2, easy, medium])
    await db_session.commit()
    return {
        "course": course.id,
        "module": module.id,
        "topic": topic1.id,
        "empty_topic": topic2.id,
        "easy": easy.id,
        "medium": medium.id,
    }


@pytest_asyncio.fixture
async def single_topic_course(db_session: AsyncSession) -> dict[str, Any]:
    """A course whose only topic has two problems."""
    course = Course(id="course-solo", title="Hashing", completion_reward_points=300)
    module = CourseModule(id="module-solo", course_id=course.id, title="Only module")
    topic = Topic(id="topic-solo", module_id=module.id, title="Hash maps")
    p1 = Problem(id="problem-solo-1", topic_id=topic.id, title="Two sum", difficulty="easy")
    p2 = Problem(id="problem-solo-2", topic_id=topic.id, title="Group anagrams", difficulty="medium")
    db_session.add_all([course, module, topic, p1, p2])
    await db_session.commit()
    return {"course": course.id, "topic": topic.id, "problems": [p1.id, p2.id]}


@pytest.fixture
def grader() -> StubGrader:
    return StubGrader()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, grader: StubGrader) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the test database and stub grader."""
    from levelup.main import create_app

    app = create_app()
    app.dependency_overrides[get_grader] = lambda: grader

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user_id: str = LEARNER, **claims: Any) -> dict[str, str]:
    token = create_access_token(user_id, **claims)
    return {"Authorization": f"Bearer {token}"}
