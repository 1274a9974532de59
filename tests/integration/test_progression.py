"""Progression state machine: gated steps, monotonic flags, one payout per step."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from levelup.db.models import Learner, ProblemSolution, QuizAttempt, RewardEvent, TopicProgress
from levelup.errors import NotFoundError, PreconditionFailed
from levelup.progression.service import ProgressionService
from tests.conftest import LEARNER, TODAY, StubGrader


async def _events(db, event_type: str | None = None) -> int:
    stmt = select(func.count()).select_from(RewardEvent)
    if event_type:
        stmt = stmt.where(RewardEvent.event_type == event_type)
    return (await db.execute(stmt)).scalar_one()


async def _learner(db) -> Learner:
    result = await db.execute(
        select(Learner).where(Learner.user_id == LEARNER).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def _quiz_passed(svc: ProgressionService, topic_id: str) -> None:
    await svc.mark_video_watched(LEARNER, topic_id)
    await svc.submit_quiz(LEARNER, topic_id, 80, today=TODAY)


@pytest.mark.asyncio
class TestVideoAndQuiz:
    async def test_initial_progress(self, db_session, catalog):
        svc = ProgressionService(db_session)
        progress = await svc.get_topic_progress(LEARNER, catalog["topic"])

        assert progress["state"] == "not_started"
        assert progress["total_problems"] == 2
        assert progress["next_step"] == "watch_video"

    async def test_unknown_topic(self, db_session, catalog):
        svc = ProgressionService(db_session)
        with pytest.raises(NotFoundError):
            await svc.get_topic_progress(LEARNER, "no-such-topic")

    async def test_mark_video_watched_is_idempotent(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await svc.mark_video_watched(LEARNER, catalog["topic"])
        progress = await svc.mark_video_watched(LEARNER, catalog["topic"])

        assert progress["state"] == "video_watched"
        count = await db_session.execute(select(func.count()).select_from(TopicProgress))
        assert count.scalar_one() == 1

    async def test_quiz_requires_video(self, db_session, catalog):
        svc = ProgressionService(db_session)
        with pytest.raises(PreconditionFailed):
            await svc.submit_quiz(LEARNER, catalog["topic"], 90, today=TODAY)

    async def test_failing_quiz_records_attempt_without_payout(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await svc.mark_video_watched(LEARNER, catalog["topic"])
        result = await svc.submit_quiz(LEARNER, catalog["topic"], 69, today=TODAY)

        assert result["passed"] is False
        assert result["points_awarded"] == 0
        assert result["progress"]["state"] == "video_watched"
        assert await _events(db_session) == 0
        attempts = await db_session.execute(select(func.count()).select_from(QuizAttempt))
        assert attempts.scalar_one() == 1

    async def test_passing_quiz_pays_once(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await svc.mark_video_watched(LEARNER, catalog["topic"])
        first = await svc.submit_quiz(LEARNER, catalog["topic"], 70, today=TODAY)
        second = await svc.submit_quiz(LEARNER, catalog["topic"], 100, today=TODAY)

        assert first["passed"] is True
        assert first["points_awarded"] == 40
        assert second["passed"] is True
        assert second["points_awarded"] == 0
        assert await _events(db_session, "pass_quiz") == 1

    async def test_failing_after_pass_does_not_regress(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        result = await svc.submit_quiz(LEARNER, catalog["topic"], 10, today=TODAY)

        assert result["passed"] is False
        assert result["progress"]["quiz_passed"] is True
        assert result["progress"]["state"] == "quiz_passed"

    @pytest.mark.parametrize("score", [-1, 101, 75.5])
    async def test_invalid_score(self, db_session, catalog, score):
        svc = ProgressionService(db_session)
        await svc.mark_video_watched(LEARNER, catalog["topic"])
        with pytest.raises(ValueError):
            await svc.submit_quiz(LEARNER, catalog["topic"], score, today=TODAY)

    async def test_zero_problem_topic_complete_after_quiz(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["empty_topic"])

        progress = await svc.get_topic_progress(LEARNER, catalog["empty_topic"])
        assert progress["state"] == "topic_complete"
        assert progress["progress_percent"] == 100


@pytest.mark.asyncio
class TestProblems:
    async def test_algorithm_requires_quiz(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await svc.mark_video_watched(LEARNER, catalog["topic"])
        with pytest.raises(PreconditionFailed):
            await svc.submit_algorithm(LEARNER, catalog["easy"], "two pointers", StubGrader())

    async def test_algorithm_approval(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])

        rejected = await svc.submit_algorithm(LEARNER, catalog["easy"], "brute force", StubGrader(algorithm_correct=False))
        assert rejected["status"] == "algorithm_submitted"

        approved = await svc.submit_algorithm(LEARNER, catalog["easy"], "two pointers", StubGrader())
        assert approved["status"] == "algorithm_approved"

    async def test_approved_algorithm_never_regresses(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.submit_algorithm(LEARNER, catalog["easy"], "two pointers", StubGrader())

        result = await svc.submit_algorithm(LEARNER, catalog["easy"], "nonsense", StubGrader(algorithm_correct=False))
        assert result["is_correct"] is False
        assert result["status"] == "algorithm_approved"

    async def test_code_requires_approved_algorithm(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.submit_algorithm(LEARNER, catalog["easy"], "brute force", StubGrader(algorithm_correct=False))

        grader = StubGrader()
        with pytest.raises(PreconditionFailed):
            await svc.submit_code(LEARNER, catalog["easy"], "print(1)", "python", grader)
        assert grader.calls == []

    async def test_failing_code_marks_code_failed(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.submit_algorithm(LEARNER, catalog["easy"], "two pointers", StubGrader())

        result = await svc.submit_code(LEARNER, catalog["easy"], "pass", "python", StubGrader(code_passes=False))

        assert result["all_tests_passed"] is False
        solution = (await db_session.execute(select(ProblemSolution))).scalar_one()
        assert solution.status == "code_failed"
        assert await _events(db_session, "solve_problem") == 0

    async def test_passing_code_solves_problem(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.submit_algorithm(LEARNER, catalog["medium"], "sort then scan", StubGrader())

        result = await svc.submit_code(LEARNER, catalog["medium"], "def solve(): ...", "python", StubGrader(), today=TODAY)

        # Quiz pass earlier today started a 1-day streak: 200 * 1.05
        assert result["points_awarded"] == 210
        learner = await _learner(db_session)
        assert learner.problems_solved == 1
        progress = await svc.get_topic_progress(LEARNER, catalog["topic"])
        assert progress["problems_completed"] == 1
        assert progress["state"] == "problems_in_progress"

    async def test_resolving_completed_problem_pays_nothing(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.record_problem_solved(LEARNER, catalog["easy"], today=TODAY)
        again = await svc.record_problem_solved(LEARNER, catalog["easy"], today=TODAY)

        assert again["applied"] is False
        assert again["points_awarded"] == 0
        progress = await svc.get_topic_progress(LEARNER, catalog["topic"])
        assert progress["problems_completed"] == 1
        assert (await _learner(db_session)).problems_solved == 1

    async def test_failing_code_after_completion_keeps_completed(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.submit_algorithm(LEARNER, catalog["easy"], "two pointers", StubGrader())
        await svc.submit_code(LEARNER, catalog["easy"], "good", "python", StubGrader(), today=TODAY)

        await svc.submit_code(LEARNER, catalog["easy"], "bad", "python", StubGrader(code_passes=False))

        solution = (await db_session.execute(select(ProblemSolution))).scalar_one()
        assert solution.status == "completed"

    async def test_record_problem_solved_requires_quiz(self, db_session, catalog):
        svc = ProgressionService(db_session)
        with pytest.raises(PreconditionFailed):
            await svc.record_problem_solved(LEARNER, catalog["easy"], today=TODAY)

    async def test_problems_completed_is_capped(self, db_session, catalog):
        svc = ProgressionService(db_session)
        await _quiz_passed(svc, catalog["topic"])
        await svc.record_problem_solved(LEARNER, catalog["easy"], today=TODAY)
        await svc.record_problem_solved(LEARNER, catalog["medium"], today=TODAY)
        await svc.record_problem_solved(LEARNER, catalog["medium"], today=TODAY)

        progress = await svc.get_topic_progress(LEARNER, catalog["topic"])
        assert progress["problems_completed"] == 2
        assert progress["total_problems"] == 2
        assert progress["state"] == "topic_complete"

    async def test_unknown_problem(self, db_session, catalog):
        svc = ProgressionService(db_session)
        with pytest.raises(NotFoundError):
            await svc.record_problem_solved(LEARNER, "no-such-problem", today=TODAY)
