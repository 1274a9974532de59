"""Leaderboard projection: a read model over learner totals and the reward ledger.

Ranks are computed on demand and never stored as authoritative state. Daily
snapshots exist only so ``top_movers`` can compare against the past.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.database import insert_for
from levelup.db.models import LeaderboardSnapshot, Learner, RewardEvent
from levelup.gamification.levels import compute_level

logger = logging.getLogger(__name__)

SCOPES = ("all_time", "weekly", "seasonal")
SNAPSHOT_PERIOD = "daily"


def scope_window(scope: str, now: datetime | None = None) -> datetime | None:
    """Start of the scoring window for a scope; None means all time.

    weekly: the last 7 days. seasonal: the current calendar quarter.
    """
    now = now or datetime.now(timezone.utc)
    if scope == "all_time":
        return None
    if scope == "weekly":
        return now - timedelta(days=7)
    if scope == "seasonal":
        first_month = 3 * ((now.month - 1) // 3) + 1
        return datetime(now.year, first_month, 1, tzinfo=timezone.utc)
    raise ValueError(f"Unknown leaderboard scope: {scope}")


def _tie_time(reached_at: datetime | None) -> datetime:
    # Naive UTC so SQLite (naive) and PostgreSQL (aware) values compare
    if reached_at is None:
        return datetime.max
    if reached_at.tzinfo is not None:
        return reached_at.astimezone(timezone.utc).replace(tzinfo=None)
    return reached_at


async def rank_learners(
    db: AsyncSession,
    scope: str = "all_time",
    now: datetime | None = None,
) -> list[dict]:
    """Every learner with a positive score, ranked 1..N.

    Order: score desc, then the time the score was reached (latest
    contributing event) asc, then user_id.
    """
    start = scope_window(scope, now)

    reached_filter = [RewardEvent.xp > 0]
    if start is not None:
        reached_filter.append(RewardEvent.created_at >= start)
    per_user = (
        select(
            RewardEvent.user_id.label("user_id"),
            func.sum(RewardEvent.xp).label("window_xp"),
            func.max(RewardEvent.created_at).label("reached_at"),
        )
        .where(*reached_filter)
        .group_by(RewardEvent.user_id)
        .subquery()
    )

    if start is None:
        score = Learner.total_xp
        stmt = (
            select(Learner, score.label("score"), per_user.c.reached_at)
            .outerjoin(per_user, per_user.c.user_id == Learner.user_id)
            .where(Learner.total_xp > 0)
        )
    else:
        stmt = (
            select(Learner, per_user.c.window_xp.label("score"), per_user.c.reached_at)
            .join(per_user, per_user.c.user_id == Learner.user_id)
            .where(per_user.c.window_xp > 0)
        )

    rows = (await db.execute(stmt)).all()
    rows.sort(key=lambda r: (-int(r.score), _tie_time(r.reached_at), r.Learner.user_id))

    ranking = []
    for position, row in enumerate(rows, start=1):
        learner = row.Learner
        level = compute_level(learner.total_xp)
        ranking.append({
            "rank": position,
            "user_id": learner.user_id,
            "display_name": learner.display_name or f"Learner-{learner.user_id[:8]}",
            "avatar_url": learner.avatar_url,
            "score": int(row.score),
            "total_xp": learner.total_xp,
            "level": level["level"],
            "level_title": level["title"],
        })
    return ranking


async def top_n(
    db: AsyncSession,
    n: int,
    scope: str = "all_time",
    now: datetime | None = None,
) -> list[dict]:
    if n <= 0:
        return []
    ranking = await rank_learners(db, scope, now)
    return ranking[:n]


async def get_user_rank(
    db: AsyncSession,
    user_id: str,
    scope: str = "all_time",
    now: datetime | None = None,
) -> dict:
    """A learner's rank, score and percentile; rank 0 when unranked."""
    ranking = await rank_learners(db, scope, now)
    total = len(ranking)
    for entry in ranking:
        if entry["user_id"] == user_id:
            return {
                "scope": scope,
                "rank": entry["rank"],
                "score": entry["score"],
                "total": total,
                "percentile": round(100 - (entry["rank"] / total * 100), 2),
            }
    return {"scope": scope, "rank": 0, "score": 0, "total": total, "percentile": 0}


async def around_me(
    db: AsyncSession,
    user_id: str,
    window_size: int = 2,
    scope: str = "all_time",
    now: datetime | None = None,
) -> list[dict]:
    """The learner's entry with up to ``window_size`` neighbours on each side."""
    if window_size < 0:
        raise ValueError("window_size must not be negative")
    ranking = await rank_learners(db, scope, now)
    index = next((i for i, e in enumerate(ranking) if e["user_id"] == user_id), None)
    if index is None:
        return []
    window = ranking[max(0, index - window_size):index + window_size + 1]
    return [{**entry, "is_current_user": entry["user_id"] == user_id} for entry in window]


async def _snapshot_before(db: AsyncSession, cutoff: date) -> tuple[str | None, dict[str, int]]:
    """Ranks from the latest daily snapshot taken on or before ``cutoff``."""
    key_result = await db.execute(
        select(func.max(LeaderboardSnapshot.period_key)).where(
            LeaderboardSnapshot.period == SNAPSHOT_PERIOD,
            LeaderboardSnapshot.period_key <= cutoff.isoformat(),
        )
    )
    period_key = key_result.scalar()
    if period_key is None:
        return None, {}

    result = await db.execute(
        select(LeaderboardSnapshot.user_id, LeaderboardSnapshot.rank).where(
            LeaderboardSnapshot.period == SNAPSHOT_PERIOD,
            LeaderboardSnapshot.period_key == period_key,
        )
    )
    return period_key, {row.user_id: row.rank for row in result}


async def top_movers(
    db: AsyncSession,
    n: int,
    days: int = 7,
    today: date | None = None,
) -> list[dict]:
    """Learners who climbed the most all-time ranks over the last ``days`` days.

    rank_change = previous_rank - current_rank (positive = moved up). Learners
    missing from the old snapshot count as ranked just below its last entry.
    """
    if n <= 0:
        return []
    if days <= 0:
        raise ValueError("days must be positive")
    today = today or datetime.now(timezone.utc).date()

    period_key, previous = await _snapshot_before(db, today - timedelta(days=days))
    if period_key is None:
        return []

    unranked = len(previous) + 1
    movers = []
    for entry in await rank_learners(db, "all_time"):
        prev_rank = previous.get(entry["user_id"], unranked)
        rank_change = prev_rank - entry["rank"]  # Positive = moved up
        if rank_change > 0:
            movers.append({
                **entry,
                "previous_rank": prev_rank,
                "rank_change": rank_change,
                "since": period_key,
            })

    movers.sort(key=lambda m: (-m["rank_change"], m["rank"]))
    return movers[:n]


async def save_snapshot(
    db: AsyncSession,
    today: date | None = None,
) -> int:
    """Upsert today's all-time ranking as the daily snapshot. Caller commits."""
    today = today or datetime.now(timezone.utc).date()
    period_key = today.isoformat()
    now = datetime.now(timezone.utc)

    ranking = await rank_learners(db, "all_time")
    for entry in ranking:
        stmt = insert_for(db, LeaderboardSnapshot.__table__).values(
            period=SNAPSHOT_PERIOD,
            period_key=period_key,
            user_id=entry["user_id"],
            rank=entry["rank"],
            score=entry["score"],
            snapshot_at=now,
        ).on_conflict_do_update(
            index_elements=["period", "period_key", "user_id"],
            set_={"rank": entry["rank"], "score": entry["score"], "snapshot_at": now},
        )
        await db.execute(stmt)

    await db.flush()
    logger.info("Saved leaderboard snapshot %s with %d entries", period_key, len(ranking))
    return len(ranking)
