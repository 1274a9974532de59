"""Pydantic response models for leaderboard endpoints."""

from __future__ import annotations

from pydantic import BaseModel


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    display_name: str
    avatar_url: str | None = None
    score: int
    total_xp: int
    level: int
    level_title: str
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    scope: str
    entries: list[LeaderboardEntryResponse]


class MoverEntryResponse(LeaderboardEntryResponse):
    previous_rank: int
    rank_change: int
    since: str


class MoversResponse(BaseModel):
    days: int
    entries: list[MoverEntryResponse]


class UserRankResponse(BaseModel):
    scope: str
    rank: int
    score: int
    total: int
    percentile: float
