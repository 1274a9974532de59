"""Leaderboard API endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.auth.dependencies import CurrentUser, get_current_user
from levelup.config import get_settings
from levelup.database import get_session
from levelup.leaderboard.schemas import (
    LeaderboardEntryResponse,
    LeaderboardResponse,
    MoverEntryResponse,
    MoversResponse,
    UserRankResponse,
)
from levelup.leaderboard.service import around_me, get_user_rank, top_movers, top_n

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])

Scope = Literal["all_time", "weekly", "seasonal"]


@router.get("", response_model=LeaderboardResponse)
async def get_leaderboard(
    scope: Scope = Query("all_time"),
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
):
    """Top learners by XP for a scope."""
    settings = get_settings()
    n = min(limit or settings.leaderboard_default_limit, settings.leaderboard_max_limit)
    entries = await top_n(db, n, scope)
    return LeaderboardResponse(
        scope=scope,
        entries=[LeaderboardEntryResponse(**e) for e in entries],
    )


@router.get("/around-me", response_model=LeaderboardResponse)
async def get_around_me(
    scope: Scope = Query("all_time"),
    window: int = Query(2, ge=0, le=25),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The current learner and their neighbours; empty until they have XP."""
    entries = await around_me(db, user.id, window, scope)
    return LeaderboardResponse(
        scope=scope,
        entries=[LeaderboardEntryResponse(**e) for e in entries],
    )


@router.get("/me", response_model=UserRankResponse)
async def get_my_rank(
    scope: Scope = Query("all_time"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await get_user_rank(db, user.id, scope)


@router.get("/movers", response_model=MoversResponse)
async def get_movers(
    days: int = Query(7, ge=1, le=90),
    limit: int | None = Query(None, ge=1),
    db: AsyncSession = Depends(get_session),
):
    """Learners who climbed the most all-time ranks over the window."""
    settings = get_settings()
    n = min(limit or settings.leaderboard_default_limit, settings.leaderboard_max_limit)
    entries = await top_movers(db, n, days)
    return MoversResponse(days=days, entries=[MoverEntryResponse(**e) for e in entries])
