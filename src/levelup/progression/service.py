"""Topic progression: video, quiz, algorithm explanation, code, solved problem.

Each step is gated on the one before it. Flags only move forward, and every
payout goes through the reward ledger under a deterministic key so retries
and replays never pay twice.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.catalog.service import count_topic_problems, get_problem, get_topic
from levelup.config import Settings, get_settings
from levelup.database import insert_for
from levelup.db.models import ProblemSolution, QuizAttempt, TopicProgress
from levelup.errors import PreconditionFailed
from levelup.gamification.achievements import check_achievements
from levelup.gamification.ledger import record_event
from levelup.gamification.rewards import EventType, compute_reward
from levelup.gamification.streaks import StreakCurve, get_multiplier, today_utc
from levelup.progression.grading import GradingService
from levelup.progression.state import derive_topic_state, next_step, progress_percent, quiz_passes

logger = logging.getLogger(__name__)

# Solution statuses
ALGORITHM_SUBMITTED = "algorithm_submitted"
ALGORITHM_APPROVED = "algorithm_approved"
CODE_FAILED = "code_failed"
COMPLETED = "completed"

# Statuses from which code may be submitted
CODE_READY_STATUSES = frozenset({ALGORITHM_APPROVED, CODE_FAILED, COMPLETED})


class ProgressionService:
    """Per (learner, topic) progression and the payouts it triggers."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.redis = redis
        settings = settings or get_settings()
        self.curve = StreakCurve.linear(settings.streak_multiplier_step, settings.streak_multiplier_cap)

    # --- Reads ---

    async def _load_progress(self, user_id: str, topic_id: str) -> TopicProgress | None:
        result = await self.db.execute(
            select(TopicProgress)
            .where(TopicProgress.user_id == user_id, TopicProgress.topic_id == topic_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_progress(self, user_id: str, topic_id: str) -> TopicProgress:
        stmt = insert_for(self.db, TopicProgress.__table__).values(
            user_id=user_id,
            topic_id=topic_id,
            video_watched=False,
            quiz_passed=False,
            problems_completed=0,
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        await self.db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id", "topic_id"]))
        progress = await self._load_progress(user_id, topic_id)
        assert progress is not None
        return progress

    async def get_topic_progress(self, user_id: str, topic_id: str) -> dict:
        """Derived state, flags and percentage for one topic."""
        await get_topic(self.db, topic_id)
        total = await count_topic_problems(self.db, topic_id)
        progress = await self._load_progress(user_id, topic_id)

        video = bool(progress and progress.video_watched)
        quiz = bool(progress and progress.quiz_passed)
        solved = progress.problems_completed if progress else 0
        state = derive_topic_state(video, quiz, solved, total)

        return {
            "topic_id": topic_id,
            "state": state.value,
            "video_watched": video,
            "quiz_passed": quiz,
            "problems_completed": solved,
            "total_problems": total,
            "progress_percent": progress_percent(video, quiz, solved, total),
            "next_step": next_step(state),
        }

    # --- Video & quiz ---

    async def mark_video_watched(self, user_id: str, topic_id: str) -> dict:
        await get_topic(self.db, topic_id)
        await self._ensure_progress(user_id, topic_id)
        await self.db.execute(
            update(TopicProgress)
            .where(TopicProgress.user_id == user_id, TopicProgress.topic_id == topic_id)
            .values(video_watched=True, updated_at=datetime.now(timezone.utc))
        )
        await self.db.flush()
        return await self.get_topic_progress(user_id, topic_id)

    async def submit_quiz(
        self,
        user_id: str,
        topic_id: str,
        score: int,
        today: date | None = None,
    ) -> dict:
        """Record a quiz score. A pass (score >= 70) unlocks problems and pays once."""
        if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= 100:
            raise ValueError(f"Quiz score must be an integer percentage, got {score!r}")

        today = today or today_utc()
        await get_topic(self.db, topic_id)
        progress = await self._ensure_progress(user_id, topic_id)
        if not progress.video_watched:
            raise PreconditionFailed("Watch the topic video before taking the quiz")

        passed = quiz_passes(score)
        self.db.add(QuizAttempt(user_id=user_id, topic_id=topic_id, score=score, passed=passed))

        points = xp = 0
        achievements: list[str] = []
        if passed:
            # Monotonic: a later failing attempt never clears the flag
            await self.db.execute(
                update(TopicProgress)
                .where(TopicProgress.user_id == user_id, TopicProgress.topic_id == topic_id)
                .values(quiz_passed=True, updated_at=datetime.now(timezone.utc))
            )
            multiplier = await get_multiplier(self.db, user_id, today, self.curve)
            reward = compute_reward(EventType.PASS_QUIZ, multiplier)
            result = await record_event(
                self.db,
                user_id,
                EventType.PASS_QUIZ.value,
                topic_id,
                points=reward.points,
                xp=reward.xp,
                metadata={"score": score, "multiplier": multiplier},
                redis=self.redis,
                today=today,
            )
            points, xp = result.points_awarded, result.xp_awarded
            if result.applied:
                achievements = await check_achievements(self.db, user_id, self.redis, today)

        await self.db.flush()
        logger.info("Quiz for topic %s by %s: score=%d passed=%s", topic_id, user_id, score, passed)
        return {
            "score": score,
            "passed": passed,
            "points_awarded": points,
            "xp_awarded": xp,
            "achievements_unlocked": achievements,
            "progress": await self.get_topic_progress(user_id, topic_id),
        }

    # --- Problems ---

    async def _require_quiz_passed(self, user_id: str, topic_id: str) -> None:
        progress = await self._load_progress(user_id, topic_id)
        if progress is None or not progress.quiz_passed:
            raise PreconditionFailed("Pass the topic quiz before solving its problems")

    async def _load_solution(self, user_id: str, problem_id: str) -> ProblemSolution | None:
        result = await self.db.execute(
            select(ProblemSolution)
            .where(ProblemSolution.user_id == user_id, ProblemSolution.problem_id == problem_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _ensure_solution(self, user_id: str, problem_id: str) -> ProblemSolution:
        stmt = insert_for(self.db, ProblemSolution.__table__).values(
            user_id=user_id,
            problem_id=problem_id,
            status=ALGORITHM_SUBMITTED,
            points_awarded=0,
        )
        await self.db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id", "problem_id"]))
        solution = await self._load_solution(user_id, problem_id)
        assert solution is not None
        return solution

    async def submit_algorithm(
        self,
        user_id: str,
        problem_id: str,
        explanation: str,
        grader: GradingService,
    ) -> dict:
        """Have the grader judge an algorithm explanation. Approval unlocks code submission."""
        if not explanation or not explanation.strip():
            raise ValueError("Algorithm explanation must not be empty")

        problem = await get_problem(self.db, problem_id)
        await self._require_quiz_passed(user_id, problem.topic_id)

        verdict = await grader.verify_algorithm(problem, explanation)

        solution = await self._ensure_solution(user_id, problem_id)
        solution.algorithm_explanation = explanation
        solution.algorithm_feedback = verdict.feedback
        solution.algorithm_verified_at = datetime.now(timezone.utc)
        if verdict.is_correct and solution.status == ALGORITHM_SUBMITTED:
            solution.status = ALGORITHM_APPROVED
        await self.db.flush()

        logger.info("Algorithm for %s by %s: correct=%s", problem_id, user_id, verdict.is_correct)
        return {
            "is_correct": verdict.is_correct,
            "feedback": verdict.feedback,
            "suggestions": verdict.suggestions,
            "status": solution.status,
        }

    async def submit_code(
        self,
        user_id: str,
        problem_id: str,
        code: str,
        language: str,
        grader: GradingService,
        today: date | None = None,
    ) -> dict:
        """Have the grader run code against the test cases. Passing solves the problem."""
        if not code or not code.strip():
            raise ValueError("Code must not be empty")

        problem = await get_problem(self.db, problem_id)
        solution = await self._load_solution(user_id, problem_id)
        if solution is None or solution.status not in CODE_READY_STATUSES:
            raise PreconditionFailed("Get the algorithm approved before submitting code")

        verdict = await grader.verify_code(problem, code, language)

        solution.code_solution = code
        solution.language = language
        solution.code_verified_at = datetime.now(timezone.utc)

        response = {
            "all_tests_passed": verdict.all_tests_passed,
            "test_results": verdict.test_results,
            "feedback": verdict.feedback,
            "points_awarded": 0,
            "xp_awarded": 0,
            "achievements_unlocked": [],
        }
        if not verdict.all_tests_passed:
            if solution.status != COMPLETED:
                solution.status = CODE_FAILED
            await self.db.flush()
            return response

        solved = await self.record_problem_solved(user_id, problem_id, today=today)
        response.update(
            points_awarded=solved["points_awarded"],
            xp_awarded=solved["xp_awarded"],
            achievements_unlocked=solved["achievements_unlocked"],
        )
        return response

    async def record_problem_solved(
        self,
        user_id: str,
        problem_id: str,
        today: date | None = None,
    ) -> dict:
        """Mark a problem solved and pay its difficulty reward once.

        problems_completed moves only when the payout applied, and never past
        the topic's problem count.
        """
        today = today or today_utc()
        problem = await get_problem(self.db, problem_id)
        await self._require_quiz_passed(user_id, problem.topic_id)

        # Multiplier from the streak as it stood before this activity
        multiplier = await get_multiplier(self.db, user_id, today, self.curve)
        reward = compute_reward(problem.difficulty, multiplier)

        solution = await self._ensure_solution(user_id, problem_id)
        solution.status = COMPLETED

        result = await record_event(
            self.db,
            user_id,
            EventType.SOLVE_PROBLEM.value,
            problem_id,
            points=reward.points,
            xp=reward.xp,
            metadata={"difficulty": problem.difficulty, "multiplier": multiplier},
            counters={"problems_solved": 1},
            redis=self.redis,
            today=today,
        )

        achievements: list[str] = []
        if result.applied:
            solution.points_awarded = result.points_awarded
            total = await count_topic_problems(self.db, problem.topic_id)
            await self.db.execute(
                update(TopicProgress)
                .where(
                    TopicProgress.user_id == user_id,
                    TopicProgress.topic_id == problem.topic_id,
                    TopicProgress.problems_completed < total,
                )
                .values(
                    problems_completed=TopicProgress.problems_completed + 1,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            achievements = await check_achievements(self.db, user_id, self.redis, today)

        await self.db.flush()
        return {
            "problem_id": problem_id,
            "applied": result.applied,
            "points_awarded": result.points_awarded,
            "xp_awarded": result.xp_awarded,
            "leveled_up": result.leveled_up,
            "achievements_unlocked": achievements,
        }
