"""Reward calculator tests: difficulty table, event kinds, multiplier rounding."""

import pytest

from levelup.gamification.rewards import (
    DIFFICULTY_POINTS,
    EventType,
    Reward,
    compute_reward,
    round_half_up,
)


class TestDifficultyRewards:
    def test_difficulty_table(self):
        assert DIFFICULTY_POINTS == {"easy": 100, "medium": 200, "hard": 300}

    @pytest.mark.parametrize("difficulty,points", [("easy", 100), ("medium", 200), ("hard", 300)])
    def test_base_reward_xp_mirrors_points(self, difficulty, points):
        assert compute_reward(difficulty) == Reward(points=points, xp=points)

    def test_hard_with_multiplier(self):
        reward = compute_reward("hard", multiplier=1.2)
        assert reward == Reward(points=360, xp=360)

    def test_is_deterministic(self):
        assert compute_reward("hard", 1.2) == compute_reward("hard", 1.2)

    def test_difficulty_is_case_insensitive(self):
        assert compute_reward("Medium").points == 200

    def test_multiplier_rounds_half_up(self):
        assert compute_reward("easy", 1.125).points == 113  # 112.5
        assert compute_reward("medium", 1.25).points == 250


class TestEventKindRewards:
    def test_quiz_pass(self):
        assert compute_reward(EventType.PASS_QUIZ) == Reward(points=40, xp=40)

    def test_quiz_pass_with_streak_multiplier(self):
        assert compute_reward("pass_quiz", 1.05) == Reward(points=42, xp=42)

    def test_course_completion_xp_is_double(self):
        assert compute_reward(EventType.COMPLETE_COURSE, base_points=500) == Reward(points=500, xp=1000)

    def test_course_completion_requires_base_points(self):
        with pytest.raises(ValueError, match="base_points"):
            compute_reward(EventType.COMPLETE_COURSE)

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValueError, match="Unknown reward kind"):
            compute_reward("legendary")

    @pytest.mark.parametrize("multiplier", [0, -1.0])
    def test_non_positive_multiplier_rejected(self, multiplier):
        with pytest.raises(ValueError):
            compute_reward("easy", multiplier)


class TestRoundHalfUp:
    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.4999, 2), (42.0, 42)])
    def test_values(self, value, expected):
        assert round_half_up(value) == expected
