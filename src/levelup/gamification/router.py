"""Gamification API endpoints: levels, achievements, points, streak, overview."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.auth.dependencies import CurrentUser, get_current_user
from levelup.database import get_session
from levelup.db.models import AchievementDefinition, LearnerAchievement
from levelup.gamification.achievements import get_learner_achievements, get_next_achievement
from levelup.gamification.ledger import get_or_create_learner, get_point_history
from levelup.gamification.levels import LEVEL_THRESHOLDS, compute_hunter_rank, compute_level
from levelup.gamification.schemas import (
    AchievementDefinitionResponse,
    AllAchievementsResponse,
    AllLevelsResponse,
    GamificationOverviewResponse,
    HunterRankResponse,
    LearnerAchievementResponse,
    LearnerAchievementsResponse,
    LevelEntry,
    LevelInfo,
    NextAchievementResponse,
    PointHistoryEntry,
    PointHistoryResponse,
    StreakResponse,
)
from levelup.gamification.streaks import default_curve, effective_streak, get_streak_state, today_utc
from levelup.leaderboard.service import get_user_rank

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """Level thresholds and titles."""
    return AllLevelsResponse(levels=[LevelEntry(**lvl) for lvl in LEVEL_THRESHOLDS])


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(db: AsyncSession = Depends(get_session)):
    result = await db.execute(
        select(AchievementDefinition)
        .where(AchievementDefinition.is_active.is_(True))
        .order_by(AchievementDefinition.sort_order)
    )
    return AllAchievementsResponse(achievements=[
        AchievementDefinitionResponse(
            code=a.code,
            name=a.name,
            description=a.description,
            icon=a.icon,
            condition_type=a.condition_type,
            condition_value=a.condition_value,
            xp_reward=a.xp_reward,
        )
        for a in result.scalars()
    ])


# ── Authenticated endpoints ──


async def _streak_response(db: AsyncSession, user_id: str) -> StreakResponse:
    curve = default_curve()
    state = await get_streak_state(db, user_id)
    streak = effective_streak(state, today_utc())
    return StreakResponse(
        current_streak=streak,
        longest_streak=state.longest_streak if state else 0,
        last_active_date=state.last_active_date if state else None,
        is_active=streak > 0,
        multiplier=curve.multiplier_for(streak),
        max_multiplier=curve.max_multiplier,
    )


@router.get("/users/me/gamification", response_model=GamificationOverviewResponse)
async def get_overview(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Totals, level, hunter rank, streak, achievements and all-time rank."""
    learner = await get_or_create_learner(db, user.id, display_name=user.display_name)
    await db.commit()

    count_result = await db.execute(
        select(func.count(LearnerAchievement.id)).where(LearnerAchievement.user_id == user.id)
    )
    next_achievement = await get_next_achievement(db, user.id)
    rank = await get_user_rank(db, user.id)

    return GamificationOverviewResponse(
        user_id=learner.user_id,
        display_name=learner.display_name,
        total_points=learner.total_points,
        total_xp=learner.total_xp,
        problems_solved=learner.problems_solved,
        courses_completed=learner.courses_completed,
        level=LevelInfo(**compute_level(learner.total_xp)),
        hunter_rank=HunterRankResponse(**compute_hunter_rank(learner.total_points)),
        streak=await _streak_response(db, user.id),
        achievements_unlocked=count_result.scalar() or 0,
        next_achievement=NextAchievementResponse(**next_achievement) if next_achievement else None,
        rank=rank["rank"],
    )


@router.get("/users/me/points/history", response_model=PointHistoryResponse)
async def get_my_point_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    data = await get_point_history(db, user.id, page, per_page)
    return PointHistoryResponse(
        entries=[PointHistoryEntry(**e) for e in data["entries"]],
        total=data["total"],
        page=data["page"],
        per_page=data["per_page"],
    )


@router.get("/users/me/streak", response_model=StreakResponse)
async def get_my_streak(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current effective streak and the multiplier the next payout would use."""
    return await _streak_response(db, user.id)


@router.get("/users/me/achievements", response_model=LearnerAchievementsResponse)
async def get_my_achievements(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    unlocked = await get_learner_achievements(db, user.id)
    total_result = await db.execute(
        select(func.count(AchievementDefinition.id)).where(AchievementDefinition.is_active.is_(True))
    )
    return LearnerAchievementsResponse(
        unlocked=[LearnerAchievementResponse(**a) for a in unlocked],
        total_available=total_result.scalar() or 0,
        total_unlocked=len(unlocked),
    )
