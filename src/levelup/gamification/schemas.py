"""Pydantic response models for gamification endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

# --- Levels & ranks ---


class LevelEntry(BaseModel):
    level: int
    title: str
    xp_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


class LevelInfo(BaseModel):
    level: int
    title: str
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_title: str


class HunterRankResponse(BaseModel):
    code: str
    label: str
    index: int
    min_points: int


# --- Achievements ---


class AchievementDefinitionResponse(BaseModel):
    code: str
    name: str
    description: str
    icon: str | None = None
    condition_type: str
    condition_value: int
    xp_reward: int


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementDefinitionResponse]


class LearnerAchievementResponse(BaseModel):
    code: str
    name: str
    description: str
    icon: str | None = None
    unlocked_at: datetime


class LearnerAchievementsResponse(BaseModel):
    unlocked: list[LearnerAchievementResponse]
    total_available: int
    total_unlocked: int


class NextAchievementResponse(BaseModel):
    code: str
    name: str
    description: str
    progress: int
    target: int


# --- Points ---


class PointHistoryEntry(BaseModel):
    event_type: str
    subject_id: str
    points: int
    xp: int
    metadata: dict = {}
    created_at: datetime | None = None


class PointHistoryResponse(BaseModel):
    entries: list[PointHistoryEntry]
    total: int
    page: int
    per_page: int


# --- Streak ---


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_active_date: date | None = None
    is_active: bool
    multiplier: float
    max_multiplier: float


# --- Overview ---


class GamificationOverviewResponse(BaseModel):
    user_id: str
    display_name: str | None = None
    total_points: int
    total_xp: int
    problems_solved: int
    courses_completed: int
    level: LevelInfo
    hunter_rank: HunterRankResponse
    streak: StreakResponse
    achievements_unlocked: int
    next_achievement: NextAchievementResponse | None = None
    rank: int
