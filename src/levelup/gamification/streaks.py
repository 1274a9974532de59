"""Daily activity streaks and the payout multiplier derived from them."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.config import get_settings
from levelup.database import insert_for
from levelup.db.models import StreakRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakState:
    current_streak: int
    longest_streak: int
    last_active_date: date | None


class StreakCurve:
    """Step table of (minimum streak, multiplier), monotonic non-decreasing.

    The last entry bounds the multiplier from above.
    """

    def __init__(self, table: list[tuple[int, float]] | tuple[tuple[int, float], ...]) -> None:
        rows = sorted((int(t), float(m)) for t, m in table)
        if not rows or rows[0][0] != 0:
            raise ValueError("Streak curve must start at a streak of 0")
        for (_, prev), (_, cur) in zip(rows, rows[1:]):
            if cur < prev:
                raise ValueError("Streak curve must be non-decreasing")
        if rows[0][1] <= 0:
            raise ValueError("Streak multipliers must be positive")
        self.table = tuple(rows)

    @classmethod
    def linear(cls, step: float, cap: int) -> StreakCurve:
        """1.00 + step * min(streak, cap)."""
        return cls([(n, round(1.0 + step * n, 4)) for n in range(cap + 1)])

    def multiplier_for(self, streak: int) -> float:
        value = self.table[0][1]
        for threshold, multiplier in self.table:
            if streak >= threshold:
                value = multiplier
        return value

    @property
    def max_multiplier(self) -> float:
        return self.table[-1][1]


def default_curve() -> StreakCurve:
    """Curve from settings."""
    settings = get_settings()
    return StreakCurve.linear(settings.streak_multiplier_step, settings.streak_multiplier_cap)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def advance_streak(state: StreakState | None, today: date) -> StreakState:
    """Apply one day of activity to a streak.

    Same day: unchanged. Next day: +1. Any larger gap: reset to 1.
    Activity dated before last_active_date never moves the streak back.
    """
    if state is None or state.last_active_date is None:
        longest = state.longest_streak if state else 0
        return StreakState(current_streak=1, longest_streak=max(1, longest), last_active_date=today)

    last = state.last_active_date
    if today <= last:
        return state
    if today == last + timedelta(days=1):
        current = state.current_streak + 1
    else:
        current = 1
    return StreakState(
        current_streak=current,
        longest_streak=max(state.longest_streak, current),
        last_active_date=today,
    )


def effective_streak(state: StreakState | None, today: date) -> int:
    """Streak that still counts today: alive if the learner was active today or yesterday."""
    if state is None or state.last_active_date is None:
        return 0
    if today - state.last_active_date <= timedelta(days=1):
        return state.current_streak
    return 0


async def get_streak_state(db: AsyncSession, user_id: str) -> StreakState | None:
    result = await db.execute(select(StreakRecord).where(StreakRecord.user_id == user_id))
    record = result.scalar_one_or_none()
    if record is None:
        return None
    return StreakState(record.current_streak, record.longest_streak, record.last_active_date)


async def get_multiplier(
    db: AsyncSession,
    user_id: str,
    today: date | None = None,
    curve: StreakCurve | None = None,
) -> float:
    """Multiplier for the learner's effective streak as of ``today``."""
    today = today or today_utc()
    curve = curve or default_curve()
    state = await get_streak_state(db, user_id)
    return curve.multiplier_for(effective_streak(state, today))


async def touch_activity(
    db: AsyncSession,
    user_id: str,
    today: date | None = None,
    curve: StreakCurve | None = None,
) -> float:
    """Record qualifying activity for ``today`` and return the resulting multiplier.

    The learner row must already exist.
    """
    today = today or today_utc()
    curve = curve or default_curve()

    stmt = insert_for(db, StreakRecord.__table__).values(
        user_id=user_id,
        current_streak=0,
        longest_streak=0,
        last_active_date=None,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))

    result = await db.execute(
        select(StreakRecord)
        .where(StreakRecord.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one()

    before = StreakState(record.current_streak, record.longest_streak, record.last_active_date)
    after = advance_streak(before, today)

    if after != before:
        record.current_streak = after.current_streak
        record.longest_streak = after.longest_streak
        record.last_active_date = after.last_active_date
        record.updated_at = datetime.now(timezone.utc)
        await db.flush()
        if after.current_streak > before.current_streak:
            logger.info("Streak for %s extended to %d", user_id, after.current_streak)

    return curve.multiplier_for(after.current_streak)
