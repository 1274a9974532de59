"""Reward event ledger with idempotency and level-up detection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.database import insert_for
from levelup.db.models import Learner, RewardEvent
from levelup.gamification import realtime
from levelup.gamification.levels import compute_level
from levelup.gamification.streaks import touch_activity

logger = logging.getLogger(__name__)

# Learner counters a reward event may bump alongside points and XP
COUNTER_COLUMNS = frozenset({"problems_solved", "courses_completed"})


@dataclass(frozen=True)
class AwardResult:
    applied: bool
    points_awarded: int
    xp_awarded: int
    event_key: str
    leveled_up: bool = False
    level: int | None = None


def build_event_key(event_type: str, user_id: str, subject_key: str) -> str:
    """Deterministic idempotency key, e.g. ``solve_problem:{user_id}:{problem_id}``."""
    return f"{event_type}:{user_id}:{subject_key}"


async def _ensure_learner_row(db: AsyncSession, user_id: str) -> None:
    stmt = insert_for(db, Learner.__table__).values(user_id=user_id)
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))


async def get_or_create_learner(
    db: AsyncSession,
    user_id: str,
    display_name: str | None = None,
    avatar_url: str | None = None,
) -> Learner:
    """Get or create the learner row, refreshing profile fields when given."""
    await _ensure_learner_row(db, user_id)
    result = await db.execute(
        select(Learner).where(Learner.user_id == user_id).execution_options(populate_existing=True)
    )
    learner = result.scalar_one()
    if display_name and learner.display_name != display_name:
        learner.display_name = display_name
    if avatar_url and learner.avatar_url != avatar_url:
        learner.avatar_url = avatar_url
    await db.flush()
    return learner


async def record_event(
    db: AsyncSession,
    user_id: str,
    event_type: str,
    subject_key: str,
    points: int,
    xp: int,
    metadata: dict | None = None,
    *,
    counters: dict[str, int] | None = None,
    touch_streak: bool = True,
    redis: object | None = None,
    today: date | None = None,
    now: datetime | None = None,
) -> AwardResult:
    """Record a reward event once per idempotency key.

    1. Insert into reward_events, ON CONFLICT (event_key) DO NOTHING
    2. If nothing was inserted, the payout already happened: return applied=False
    3. Atomically add points, XP and counters to the learner row
    4. Touch the streak for today
    5. Publish realtime updates (and level_up when the derived level rose)

    Runs inside the caller's transaction; the caller commits.
    """
    if points < 0 or xp < 0:
        raise ValueError("Reward amounts must not be negative")
    counters = counters or {}
    unknown = set(counters) - COUNTER_COLUMNS
    if unknown:
        raise ValueError(f"Unknown learner counters: {sorted(unknown)}")

    now = now or datetime.now(timezone.utc)
    event_key = build_event_key(event_type, user_id, subject_key)

    await _ensure_learner_row(db, user_id)

    stmt = insert_for(db, RewardEvent.__table__).values(
        event_key=event_key,
        event_type=event_type,
        user_id=user_id,
        subject_id=subject_key,
        points=points,
        xp=xp,
        event_metadata=metadata or {},
        created_at=now,
    )
    result = await db.execute(stmt.on_conflict_do_nothing(index_elements=["event_key"]))
    if result.rowcount != 1:
        logger.info("Reward event %s already applied", event_key)
        return AwardResult(applied=False, points_awarded=0, xp_awarded=0, event_key=event_key)

    values: dict = {
        "total_points": Learner.total_points + points,
        "total_xp": Learner.total_xp + xp,
        "updated_at": now,
    }
    for column, delta in counters.items():
        values[column] = getattr(Learner, column) + delta
    await db.execute(update(Learner).where(Learner.user_id == user_id).values(**values))

    totals = await db.execute(
        select(Learner.total_points, Learner.total_xp).where(Learner.user_id == user_id)
    )
    total_points, total_xp = totals.one()

    old_level = compute_level(total_xp - xp)["level"]
    level_info = compute_level(total_xp)

    if touch_streak:
        await touch_activity(db, user_id, today)

    await db.flush()
    logger.info("Awarded %d points / %d XP to %s for %s", points, xp, user_id, event_key)

    await realtime.publish(redis, realtime.learner_channel(user_id), {
        "event": "points_awarded",
        "event_type": event_type,
        "points": points,
        "xp": xp,
        "total_points": total_points,
        "total_xp": total_xp,
    })
    await realtime.publish(redis, realtime.LEADERBOARD_CHANNEL, {
        "event": "totals_changed",
        "user_id": user_id,
        "total_xp": total_xp,
    })

    leveled_up = level_info["level"] > old_level
    if leveled_up:
        await realtime.publish(redis, realtime.LEVEL_UP_CHANNEL, {
            "user_id": user_id,
            "old_level": old_level,
            "new_level": level_info["level"],
            "title": level_info["title"],
        })

    return AwardResult(
        applied=True,
        points_awarded=points,
        xp_awarded=xp,
        event_key=event_key,
        leveled_up=leveled_up,
        level=level_info["level"],
    )


async def get_point_history(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 50,
) -> dict:
    """Reward events for a learner, newest first."""
    total_result = await db.execute(
        select(func.count()).select_from(RewardEvent).where(RewardEvent.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(RewardEvent)
        .where(RewardEvent.user_id == user_id)
        .order_by(RewardEvent.created_at.desc(), RewardEvent.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return {
        "entries": [
            {
                "event_type": e.event_type,
                "subject_id": e.subject_id,
                "points": e.points,
                "xp": e.xp,
                "metadata": e.event_metadata or {},
                "created_at": e.created_at,
            }
            for e in result.scalars()
        ],
        "total": total,
        "page": page,
        "per_page": per_page,
    }
