"""Topic progression states, derived from stored flags and never stored themselves."""

from __future__ import annotations

from enum import Enum

QUIZ_PASS_THRESHOLD = 70


class TopicState(str, Enum):
    NOT_STARTED = "not_started"
    VIDEO_WATCHED = "video_watched"
    QUIZ_PASSED = "quiz_passed"
    PROBLEMS_IN_PROGRESS = "problems_in_progress"
    TOPIC_COMPLETE = "topic_complete"


def is_topic_complete(video_watched: bool, quiz_passed: bool, problems_completed: int, total_problems: int) -> bool:
    """Video watched, quiz passed and every problem solved (no problems: quiz suffices)."""
    return video_watched and quiz_passed and problems_completed >= total_problems


def derive_topic_state(
    video_watched: bool,
    quiz_passed: bool,
    problems_completed: int,
    total_problems: int,
) -> TopicState:
    if is_topic_complete(video_watched, quiz_passed, problems_completed, total_problems):
        return TopicState.TOPIC_COMPLETE
    if quiz_passed:
        if problems_completed > 0:
            return TopicState.PROBLEMS_IN_PROGRESS
        return TopicState.QUIZ_PASSED
    if video_watched:
        return TopicState.VIDEO_WATCHED
    return TopicState.NOT_STARTED


def next_step(state: TopicState) -> str | None:
    """What the learner should do next in a topic."""
    return {
        TopicState.NOT_STARTED: "watch_video",
        TopicState.VIDEO_WATCHED: "take_quiz",
        TopicState.QUIZ_PASSED: "solve_problems",
        TopicState.PROBLEMS_IN_PROGRESS: "solve_problems",
        TopicState.TOPIC_COMPLETE: None,
    }[state]


def progress_percent(video_watched: bool, quiz_passed: bool, problems_completed: int, total_problems: int) -> int:
    """Topic progress in thirds: video, quiz, then the solved fraction of problems."""
    if total_problems > 0:
        problem_fraction = min(problems_completed, total_problems) / total_problems
    else:
        problem_fraction = 1.0 if quiz_passed else 0.0
    steps = int(video_watched) + int(quiz_passed) + problem_fraction
    return round(steps / 3 * 100)


def quiz_passes(score: int) -> bool:
    return score >= QUIZ_PASS_THRESHOLD


def quiz_score_percent(answers: list, correct: list) -> int:
    """Integer floor percentage of answers matching the key, position by position."""
    if not correct:
        raise ValueError("Quiz has no questions")
    if len(answers) != len(correct):
        raise ValueError(f"Expected {len(correct)} answers, got {len(answers)}")
    right = sum(1 for given, expected in zip(answers, correct) if given == expected)
    return right * 100 // len(correct)
