"""Request and response models for progression and course endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

# --- Requests ---


class QuizSubmitRequest(BaseModel):
    score: int = Field(ge=0, le=100, description="Percentage of correct answers")


class AlgorithmSubmitRequest(BaseModel):
    explanation: str = Field(min_length=1, max_length=10000)


class CodeSubmitRequest(BaseModel):
    code: str = Field(min_length=1, max_length=100000)
    language: str = Field(min_length=1, max_length=32)


# --- Topics ---


class TopicProgressResponse(BaseModel):
    topic_id: str
    state: str
    video_watched: bool
    quiz_passed: bool
    problems_completed: int
    total_problems: int
    progress_percent: int
    next_step: str | None = None


class QuizResultResponse(BaseModel):
    score: int
    passed: bool
    points_awarded: int
    xp_awarded: int
    achievements_unlocked: list[str] = []
    progress: TopicProgressResponse


class AlgorithmResultResponse(BaseModel):
    is_correct: bool
    feedback: str
    suggestions: str
    status: str


class CodeResultResponse(BaseModel):
    all_tests_passed: bool
    test_results: list[dict[str, Any]] = []
    feedback: str
    points_awarded: int
    xp_awarded: int
    achievements_unlocked: list[str] = []


# --- Courses ---


class EnrollmentResponse(BaseModel):
    course_id: str
    enrolled_at: datetime
    completed_at: datetime | None = None
    newly_enrolled: bool


class CourseProgressResponse(BaseModel):
    course_id: str
    enrolled: bool
    completed_topics: int
    total_topics: int
    progress_percent: int
    completed_at: datetime | None = None


class CourseCompletionResponse(BaseModel):
    awarded: bool
    points: int
    xp: int
    message: str
