"""Reward calculator: event kind or difficulty -> points and XP.

Pure functions only. Callers pass the streak multiplier in.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


class EventType(str, Enum):
    SOLVE_PROBLEM = "solve_problem"
    PASS_QUIZ = "pass_quiz"
    COMPLETE_COURSE = "complete_course"
    ACHIEVEMENT = "achievement"


DIFFICULTY_POINTS: dict[str, int] = {
    "easy": 100,
    "medium": 200,
    "hard": 300,
}

QUIZ_PASS_POINTS = 40
QUIZ_PASS_XP = 40

# Course completion XP is a multiple of the course's configured points
COURSE_COMPLETION_XP_FACTOR = 2


@dataclass(frozen=True)
class Reward:
    points: int
    xp: int


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positive values."""
    return int(math.floor(value + 0.5))


def compute_reward(
    kind: str,
    multiplier: float = 1.0,
    *,
    base_points: int | None = None,
) -> Reward:
    """Compute the payout for a difficulty (easy/medium/hard) or an event kind.

    ``base_points`` is required for course completion (the course's
    ``completion_reward_points``) and overrides the table for other kinds.
    """
    if multiplier <= 0:
        raise ValueError(f"Multiplier must be positive, got {multiplier}")

    key = kind.value if isinstance(kind, EventType) else str(kind).lower()

    if key in DIFFICULTY_POINTS:
        points = base_points if base_points is not None else DIFFICULTY_POINTS[key]
        xp = points
    elif key == EventType.PASS_QUIZ.value:
        points = base_points if base_points is not None else QUIZ_PASS_POINTS
        xp = QUIZ_PASS_XP if base_points is None else base_points
    elif key == EventType.COMPLETE_COURSE.value:
        if base_points is None:
            raise ValueError("Course completion requires base_points")
        points = base_points
        xp = base_points * COURSE_COMPLETION_XP_FACTOR
    else:
        raise ValueError(f"Unknown reward kind: {kind}")

    return Reward(
        points=round_half_up(points * multiplier),
        xp=round_half_up(xp * multiplier),
    )
