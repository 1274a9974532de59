"""Leaderboard endpoints."""

import pytest
import pytest_asyncio
from httpx import AsyncClient

from levelup.gamification.ledger import record_event
from tests.conftest import LEARNER, OTHER_LEARNER, auth_headers


@pytest_asyncio.fixture
async def ranked(db_session):
    await record_event(db_session, LEARNER, "solve_problem", "p1", 100, 100)
    await record_event(db_session, OTHER_LEARNER, "solve_problem", "p1", 300, 300)
    await db_session.commit()


@pytest.mark.asyncio
class TestLeaderboardEndpoints:
    async def test_empty_board(self, client: AsyncClient):
        response = await client.get("/api/v1/leaderboard")
        assert response.status_code == 200
        assert response.json() == {"scope": "all_time", "entries": []}

    async def test_top(self, client: AsyncClient, ranked):
        response = await client.get("/api/v1/leaderboard", params={"scope": "weekly"})
        assert response.status_code == 200
        entries = response.json()["entries"]
        assert [e["user_id"] for e in entries] == [OTHER_LEARNER, LEARNER]
        assert entries[0]["rank"] == 1
        assert entries[0]["score"] == 300

    async def test_limit(self, client: AsyncClient, ranked):
        response = await client.get("/api/v1/leaderboard", params={"limit": 1})
        assert len(response.json()["entries"]) == 1

    async def test_unknown_scope(self, client: AsyncClient):
        response = await client.get("/api/v1/leaderboard", params={"scope": "monthly"})
        assert response.status_code == 422

    async def test_my_rank(self, client: AsyncClient, ranked):
        response = await client.get("/api/v1/leaderboard/me", headers=auth_headers())
        assert response.status_code == 200
        data = response.json()
        assert data["rank"] == 2
        assert data["total"] == 2

    async def test_around_me(self, client: AsyncClient, ranked):
        response = await client.get("/api/v1/leaderboard/around-me", headers=auth_headers())
        assert response.status_code == 200
        entries = response.json()["entries"]
        assert [e["is_current_user"] for e in entries] == [False, True]

    async def test_around_me_unranked(self, client: AsyncClient, ranked):
        response = await client.get(
            "/api/v1/leaderboard/around-me",
            headers=auth_headers("0b6f6c1e-3333-4c3a-9d55-000000000003"),
        )
        assert response.json()["entries"] == []

    async def test_movers_without_snapshot(self, client: AsyncClient, ranked):
        response = await client.get("/api/v1/leaderboard/movers")
        assert response.status_code == 200
        assert response.json() == {"days": 7, "entries": []}
