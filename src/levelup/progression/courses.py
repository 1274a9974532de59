"""Course enrollment, progress and the one-time completion reward."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.catalog.service import course_topic_ids, get_course, problem_counts_for_topics
from levelup.database import insert_for
from levelup.db.models import Enrollment, TopicProgress
from levelup.errors import PreconditionFailed, RequirementsNotMet
from levelup.gamification.achievements import check_achievements
from levelup.gamification.ledger import record_event
from levelup.gamification.rewards import EventType, compute_reward
from levelup.gamification.streaks import today_utc
from levelup.progression.state import is_topic_complete

logger = logging.getLogger(__name__)


class CourseService:
    """Course completion aggregator: a course is complete when every topic is."""

    def __init__(
        self,
        db: AsyncSession,
        redis: object | None = None,
    ) -> None:
        self.db = db
        self.redis = redis

    async def _get_enrollment(self, user_id: str, course_id: str) -> Enrollment | None:
        result = await self.db.execute(
            select(Enrollment)
            .where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def enroll(self, user_id: str, course_id: str) -> dict:
        """Enroll a learner (idempotent)."""
        await get_course(self.db, course_id)
        stmt = insert_for(self.db, Enrollment.__table__).values(
            user_id=user_id,
            course_id=course_id,
            enrolled_at=datetime.now(timezone.utc),
            completion_points_awarded=0,
        )
        result = await self.db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id", "course_id"]))
        enrollment = await self._get_enrollment(user_id, course_id)
        assert enrollment is not None
        if result.rowcount == 1:
            logger.info("Learner %s enrolled in course %s", user_id, course_id)
        return {
            "course_id": course_id,
            "enrolled_at": enrollment.enrolled_at,
            "completed_at": enrollment.completed_at,
            "newly_enrolled": result.rowcount == 1,
        }

    async def _topic_completion(self, user_id: str, course_id: str) -> dict[str, bool]:
        """Completion flag per topic of the course."""
        topic_ids = await course_topic_ids(self.db, course_id)
        if not topic_ids:
            return {}
        totals = await problem_counts_for_topics(self.db, topic_ids)
        result = await self.db.execute(
            select(TopicProgress)
            .where(TopicProgress.user_id == user_id, TopicProgress.topic_id.in_(topic_ids))
            .execution_options(populate_existing=True)
        )
        rows = {p.topic_id: p for p in result.scalars().all()}

        completion: dict[str, bool] = {}
        for topic_id in topic_ids:
            p = rows.get(topic_id)
            completion[topic_id] = p is not None and is_topic_complete(
                p.video_watched, p.quiz_passed, p.problems_completed, totals[topic_id]
            )
        return completion

    async def is_course_complete(self, user_id: str, course_id: str) -> bool:
        """True iff the course has topics and every one of them is complete."""
        completion = await self._topic_completion(user_id, course_id)
        return bool(completion) and all(completion.values())

    async def get_course_progress(self, user_id: str, course_id: str) -> dict:
        await get_course(self.db, course_id)
        completion = await self._topic_completion(user_id, course_id)
        total = len(completion)
        completed = sum(1 for done in completion.values() if done)
        enrollment = await self._get_enrollment(user_id, course_id)
        return {
            "course_id": course_id,
            "enrolled": enrollment is not None,
            "completed_topics": completed,
            "total_topics": total,
            "progress_percent": round(completed / total * 100) if total else 0,
            "completed_at": enrollment.completed_at if enrollment else None,
        }

    async def complete_course(
        self,
        user_id: str,
        course_id: str,
        today: date | None = None,
    ) -> dict:
        """Verify every topic is complete, mark the enrollment completed and pay once.

        Raises:
            NotFoundError: unknown course.
            PreconditionFailed: the learner is not enrolled.
            RequirementsNotMet: at least one topic is incomplete; nothing is written.
        """
        today = today or today_utc()
        course = await get_course(self.db, course_id)
        enrollment = await self._get_enrollment(user_id, course_id)
        if enrollment is None:
            raise PreconditionFailed("Enroll in the course before completing it")

        if enrollment.completed_at is not None:
            return {
                "awarded": False,
                "points": 0,
                "xp": 0,
                "message": "Course already completed",
            }

        if not await self.is_course_complete(user_id, course_id):
            raise RequirementsNotMet("Complete every topic in the course first")

        now = datetime.now(timezone.utc)
        marked = await self.db.execute(
            update(Enrollment)
            .where(
                Enrollment.id == enrollment.id,
                Enrollment.completed_at.is_(None),
            )
            .values(completed_at=now)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            # Another request completed it first
            return {
                "awarded": False,
                "points": 0,
                "xp": 0,
                "message": "Course already completed",
            }

        # Course completion is not streak-multiplied
        reward = compute_reward(EventType.COMPLETE_COURSE, 1.0, base_points=course.completion_reward_points)
        result = await record_event(
            self.db,
            user_id,
            EventType.COMPLETE_COURSE.value,
            course_id,
            points=reward.points,
            xp=reward.xp,
            metadata={"course_title": course.title},
            counters={"courses_completed": 1},
            redis=self.redis,
            today=today,
        )

        if result.applied:
            await self.db.execute(
                update(Enrollment)
                .where(Enrollment.id == enrollment.id)
                .values(completion_points_awarded=result.points_awarded)
                .execution_options(synchronize_session=False)
            )
            await check_achievements(self.db, user_id, self.redis, today)

        await self.db.flush()
        logger.info("Course %s completed by %s (+%d points)", course_id, user_id, result.points_awarded)
        return {
            "awarded": result.applied,
            "points": result.points_awarded,
            "xp": result.xp_awarded,
            "message": (
                f"Course completed! +{result.points_awarded} points"
                if result.applied
                else "Course already completed"
            ),
        }
