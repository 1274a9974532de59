"""Gamification endpoints: levels, achievements, overview, streak, history."""

import pytest
from httpx import AsyncClient

from levelup.gamification.achievements import ACHIEVEMENT_SEED_DATA, seed_achievements
from levelup.gamification.levels import LEVEL_THRESHOLDS
from tests.conftest import OTHER_LEARNER, auth_headers


async def _pass_quiz(client: AsyncClient, topic_id: str, **claims) -> None:
    headers = auth_headers(**claims)
    await client.post(f"/api/v1/topics/{topic_id}/video", headers=headers)
    response = await client.post(f"/api/v1/topics/{topic_id}/quiz", json={"score": 100}, headers=headers)
    assert response.status_code == 200


@pytest.mark.asyncio
class TestPublicEndpoints:
    async def test_levels(self, client: AsyncClient):
        response = await client.get("/api/v1/levels")
        assert response.status_code == 200
        levels = response.json()["levels"]
        assert len(levels) == len(LEVEL_THRESHOLDS)
        assert levels[0] == {"level": 1, "title": "Rookie", "xp_required": 0, "cumulative": 0}

    async def test_achievement_catalog(self, client: AsyncClient, db_session):
        await seed_achievements(db_session)
        response = await client.get("/api/v1/achievements")
        assert response.status_code == 200
        codes = [a["code"] for a in response.json()["achievements"]]
        assert len(codes) == len(ACHIEVEMENT_SEED_DATA)
        assert codes[0] == "first_solve"


@pytest.mark.asyncio
class TestOverview:
    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me/gamification")
        assert response.status_code in (401, 403)

    async def test_new_learner(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/users/me/gamification",
            headers=auth_headers(user_metadata={"full_name": "Ada Lovelace"}),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["display_name"] == "Ada Lovelace"
        assert data["total_points"] == 0
        assert data["level"]["level"] == 1
        assert data["level"]["title"] == "Rookie"
        assert data["hunter_rank"]["code"] == "E"
        assert data["streak"]["current_streak"] == 0
        assert data["rank"] == 0

    async def test_after_quiz_pass(self, client: AsyncClient, catalog):
        await _pass_quiz(client, catalog["topic"])

        data = (await client.get("/api/v1/users/me/gamification", headers=auth_headers())).json()
        assert data["total_points"] == 40
        assert data["total_xp"] == 40
        assert data["rank"] == 1
        assert data["streak"]["is_active"] is True


@pytest.mark.asyncio
class TestStreakAndHistory:
    async def test_streak_after_activity(self, client: AsyncClient, catalog):
        await _pass_quiz(client, catalog["topic"])

        response = await client.get("/api/v1/users/me/streak", headers=auth_headers())
        assert response.status_code == 200
        data = response.json()
        assert data["current_streak"] == 1
        assert data["longest_streak"] == 1
        assert data["multiplier"] == pytest.approx(1.05)
        assert data["max_multiplier"] == pytest.approx(1.5)

    async def test_streak_without_activity(self, client: AsyncClient):
        data = (await client.get("/api/v1/users/me/streak", headers=auth_headers())).json()
        assert data["current_streak"] == 0
        assert data["is_active"] is False
        assert data["multiplier"] == pytest.approx(1.0)

    async def test_point_history(self, client: AsyncClient, catalog):
        await _pass_quiz(client, catalog["topic"])

        response = await client.get("/api/v1/users/me/points/history", headers=auth_headers())
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["entries"][0]["event_type"] == "pass_quiz"
        assert data["entries"][0]["subject_id"] == catalog["topic"]

    async def test_history_is_per_learner(self, client: AsyncClient, catalog):
        await _pass_quiz(client, catalog["topic"])
        data = (await client.get("/api/v1/users/me/points/history", headers=auth_headers(OTHER_LEARNER))).json()
        assert data["total"] == 0
        assert data["entries"] == []


@pytest.mark.asyncio
class TestMyAchievements:
    async def test_unlocked_list(self, client: AsyncClient, db_session, catalog, grader):
        await seed_achievements(db_session)
        await _pass_quiz(client, catalog["topic"])
        await client.post(
            f"/api/v1/problems/{catalog['easy']}/algorithm",
            json={"explanation": "two pointers"},
            headers=auth_headers(),
        )
        solved = await client.post(
            f"/api/v1/problems/{catalog['easy']}/code",
            json={"code": "def f(): ...", "language": "python"},
            headers=auth_headers(),
        )
        assert solved.json()["achievements_unlocked"] == ["first_solve"]

        response = await client.get("/api/v1/users/me/achievements", headers=auth_headers())
        assert response.status_code == 200
        data = response.json()
        assert data["total_unlocked"] == 1
        assert data["total_available"] == len(ACHIEVEMENT_SEED_DATA)
        assert data["unlocked"][0]["code"] == "first_solve"
