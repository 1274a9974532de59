"""Achievement seed data, unlock checks and the next-achievement hint."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.database import insert_for
from levelup.db.models import AchievementDefinition, Learner, LearnerAchievement
from levelup.gamification.ledger import record_event
from levelup.gamification.levels import compute_level
from levelup.gamification.rewards import EventType
from levelup.gamification.streaks import effective_streak, get_streak_state, today_utc

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Problems
    {
        "code": "first_solve",
        "name": "Hello, World",
        "description": "Solve your first coding problem",
        "icon": "code",
        "condition_type": "problems_solved",
        "condition_value": 1,
        "xp_reward": 25,
        "sort_order": 1,
    },
    {
        "code": "solver_10",
        "name": "Problem Crusher",
        "description": "Solve 10 coding problems",
        "icon": "hammer",
        "condition_type": "problems_solved",
        "condition_value": 10,
        "xp_reward": 100,
        "sort_order": 2,
    },
    {
        "code": "solver_50",
        "name": "Algorithm Hunter",
        "description": "Solve 50 coding problems",
        "icon": "target",
        "condition_type": "problems_solved",
        "condition_value": 50,
        "xp_reward": 300,
        "sort_order": 3,
    },
    # Courses
    {
        "code": "first_course",
        "name": "Graduate",
        "description": "Complete your first course",
        "icon": "graduation-cap",
        "condition_type": "courses_completed",
        "condition_value": 1,
        "xp_reward": 100,
        "sort_order": 10,
    },
    {
        "code": "courses_5",
        "name": "Lifelong Learner",
        "description": "Complete 5 courses",
        "icon": "library",
        "condition_type": "courses_completed",
        "condition_value": 5,
        "xp_reward": 400,
        "sort_order": 11,
    },
    # Streaks
    {
        "code": "streak_3",
        "name": "On a Roll",
        "description": "Stay active 3 days in a row",
        "icon": "flame",
        "condition_type": "streak_days",
        "condition_value": 3,
        "xp_reward": 30,
        "sort_order": 20,
    },
    {
        "code": "streak_7",
        "name": "Week Warrior",
        "description": "Stay active 7 days in a row",
        "icon": "flame",
        "condition_type": "streak_days",
        "condition_value": 7,
        "xp_reward": 70,
        "sort_order": 21,
    },
    {
        "code": "streak_30",
        "name": "Unstoppable",
        "description": "Stay active 30 days in a row",
        "icon": "zap",
        "condition_type": "streak_days",
        "condition_value": 30,
        "xp_reward": 300,
        "sort_order": 22,
    },
    # XP & levels
    {
        "code": "xp_1000",
        "name": "Thousand Club",
        "description": "Earn 1,000 XP",
        "icon": "star",
        "condition_type": "xp_earned",
        "condition_value": 1000,
        "xp_reward": 50,
        "sort_order": 30,
    },
    {
        "code": "level_5",
        "name": "Algorithmist",
        "description": "Reach level 5",
        "icon": "trophy",
        "condition_type": "level_reached",
        "condition_value": 5,
        "xp_reward": 50,
        "sort_order": 31,
    },
    {
        "code": "level_10",
        "name": "Master",
        "description": "Reach level 10",
        "icon": "crown",
        "condition_type": "level_reached",
        "condition_value": 10,
        "xp_reward": 150,
        "sort_order": 32,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert achievement definitions that do not exist yet (idempotent)."""
    inserted = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = insert_for(db, AchievementDefinition.__table__).values(**data, is_active=True)
        result = await db.execute(stmt.on_conflict_do_nothing(index_elements=["code"]))
        inserted += result.rowcount or 0
    await db.commit()
    if inserted:
        logger.info("Seeded %d achievement definitions", inserted)
    return inserted


def metric_for(condition_type: str, learner: Learner, streak: int) -> int:
    """Current value of the metric an achievement condition measures."""
    if condition_type == "problems_solved":
        return learner.problems_solved
    if condition_type == "courses_completed":
        return learner.courses_completed
    if condition_type == "streak_days":
        return streak
    if condition_type == "xp_earned":
        return learner.total_xp
    if condition_type == "level_reached":
        return compute_level(learner.total_xp)["level"]
    return 0


async def _load_context(db: AsyncSession, user_id: str, today: date) -> tuple[Learner | None, int]:
    result = await db.execute(
        select(Learner).where(Learner.user_id == user_id).execution_options(populate_existing=True)
    )
    learner = result.scalar_one_or_none()
    state = await get_streak_state(db, user_id)
    return learner, effective_streak(state, today)


async def _unlocked_ids(db: AsyncSession, user_id: str) -> set[int]:
    result = await db.execute(
        select(LearnerAchievement.achievement_id).where(LearnerAchievement.user_id == user_id)
    )
    return set(result.scalars().all())


async def check_achievements(
    db: AsyncSession,
    user_id: str,
    redis: object | None = None,
    today: date | None = None,
) -> list[str]:
    """Unlock every satisfied achievement once and pay its XP through the ledger.

    Returns the codes unlocked by this call.
    """
    today = today or today_utc()
    learner, streak = await _load_context(db, user_id, today)
    if learner is None:
        return []

    defs = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(AchievementDefinition.sort_order)
    )
    unlocked = await _unlocked_ids(db, user_id)

    awarded: list[str] = []
    for definition in defs.scalars().all():
        if definition.id in unlocked:
            continue
        if metric_for(definition.condition_type, learner, streak) < definition.condition_value:
            continue

        stmt = insert_for(db, LearnerAchievement.__table__).values(
            user_id=user_id,
            achievement_id=definition.id,
            unlocked_at=datetime.now(timezone.utc),
        )
        result = await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id", "achievement_id"]))
        if result.rowcount != 1:
            continue  # Unlocked concurrently

        if definition.xp_reward > 0:
            await record_event(
                db,
                user_id,
                EventType.ACHIEVEMENT.value,
                definition.code,
                points=0,
                xp=definition.xp_reward,
                metadata={"achievement": definition.code},
                touch_streak=False,
                redis=redis,
                today=today,
            )
        awarded.append(definition.code)
        logger.info("Achievement %s unlocked for %s", definition.code, user_id)

    return awarded


async def get_learner_achievements(db: AsyncSession, user_id: str) -> list[dict]:
    """Unlocked achievements, newest first."""
    result = await db.execute(
        select(LearnerAchievement)
        .where(LearnerAchievement.user_id == user_id)
        .order_by(LearnerAchievement.unlocked_at.desc())
    )
    return [
        {
            "code": row.achievement.code,
            "name": row.achievement.name,
            "description": row.achievement.description,
            "icon": row.achievement.icon,
            "unlocked_at": row.unlocked_at,
        }
        for row in result.unique().scalars().all()
    ]


async def get_next_achievement(
    db: AsyncSession,
    user_id: str,
    today: date | None = None,
) -> dict | None:
    """The locked achievement with the lowest target, with progress toward it."""
    today = today or today_utc()
    learner, streak = await _load_context(db, user_id, today)
    if learner is None:
        return None

    unlocked = await _unlocked_ids(db, user_id)
    defs = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(AchievementDefinition.condition_value, AchievementDefinition.sort_order)
    )
    for definition in defs.scalars().all():
        if definition.id in unlocked:
            continue
        current = metric_for(definition.condition_type, learner, streak)
        return {
            "code": definition.code,
            "name": definition.name,
            "description": definition.description,
            "progress": min(current, definition.condition_value),
            "target": definition.condition_value,
        }
    return None
