"""Course completion aggregator: enrollment, server-side gate, one-time reward."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from levelup.db.models import Course, Enrollment, Learner, RewardEvent, Topic
from levelup.errors import NotFoundError, PreconditionFailed, RequirementsNotMet
from levelup.progression.courses import CourseService
from levelup.progression.service import ProgressionService
from tests.conftest import LEARNER, TODAY


async def _complete_topic(db, topic_id: str, problem_ids: list[str]) -> None:
    svc = ProgressionService(db)
    await svc.mark_video_watched(LEARNER, topic_id)
    await svc.submit_quiz(LEARNER, topic_id, 90, today=TODAY)
    for problem_id in problem_ids:
        await svc.record_problem_solved(LEARNER, problem_id, today=TODAY)


async def _complete_all(db, catalog) -> None:
    await _complete_topic(db, catalog["topic"], [catalog["easy"], catalog["medium"]])
    await _complete_topic(db, catalog["empty_topic"], [])


@pytest.mark.asyncio
class TestEnrollment:
    async def test_enroll_is_idempotent(self, db_session, catalog):
        svc = CourseService(db_session)
        first = await svc.enroll(LEARNER, catalog["course"])
        second = await svc.enroll(LEARNER, catalog["course"])

        assert first["newly_enrolled"] is True
        assert second["newly_enrolled"] is False
        count = await db_session.execute(select(func.count()).select_from(Enrollment))
        assert count.scalar_one() == 1

    async def test_enroll_unknown_course(self, db_session, catalog):
        with pytest.raises(NotFoundError):
            await CourseService(db_session).enroll(LEARNER, "no-such-course")


@pytest.mark.asyncio
class TestCourseGate:
    async def test_incomplete_course(self, db_session, catalog):
        svc = CourseService(db_session)
        await _complete_topic(db_session, catalog["empty_topic"], [])

        assert await svc.is_course_complete(LEARNER, catalog["course"]) is False
        progress = await svc.get_course_progress(LEARNER, catalog["course"])
        assert progress["completed_topics"] == 1
        assert progress["total_topics"] == 2
        assert progress["progress_percent"] == 50

    async def test_complete_course(self, db_session, catalog):
        await _complete_all(db_session, catalog)
        assert await CourseService(db_session).is_course_complete(LEARNER, catalog["course"]) is True

    async def test_course_without_topics_is_never_complete(self, db_session, catalog):
        db_session.add(Course(id="course-empty", title="Coming soon", completion_reward_points=100))
        await db_session.commit()

        svc = CourseService(db_session)
        assert await svc.is_course_complete(LEARNER, "course-empty") is False
        progress = await svc.get_course_progress(LEARNER, "course-empty")
        assert progress["progress_percent"] == 0


@pytest.mark.asyncio
class TestCompleteCourse:
    async def test_requires_enrollment(self, db_session, catalog):
        await _complete_all(db_session, catalog)
        with pytest.raises(PreconditionFailed):
            await CourseService(db_session).complete_course(LEARNER, catalog["course"], today=TODAY)

    async def test_unmet_requirements_write_nothing(self, db_session, catalog):
        svc = CourseService(db_session)
        await svc.enroll(LEARNER, catalog["course"])
        await _complete_topic(db_session, catalog["topic"], [catalog["easy"]])
        await db_session.commit()

        with pytest.raises(RequirementsNotMet):
            await svc.complete_course(LEARNER, catalog["course"], today=TODAY)

        enrollment = (await db_session.execute(select(Enrollment))).scalar_one()
        assert enrollment.completed_at is None
        events = await db_session.execute(
            select(func.count()).select_from(RewardEvent).where(RewardEvent.event_type == "complete_course")
        )
        assert events.scalar_one() == 0

    async def test_awards_once(self, db_session, catalog):
        svc = CourseService(db_session)
        await svc.enroll(LEARNER, catalog["course"])
        await _complete_all(db_session, catalog)

        first = await svc.complete_course(LEARNER, catalog["course"], today=TODAY)
        second = await svc.complete_course(LEARNER, catalog["course"], today=TODAY)
        await db_session.commit()

        assert first == {"awarded": True, "points": 500, "xp": 1000, "message": "Course completed! +500 points"}
        assert second["awarded"] is False
        assert second["points"] == 0

        learner = (await db_session.execute(
            select(Learner).execution_options(populate_existing=True)
        )).scalar_one()
        assert learner.courses_completed == 1

        enrollment = (await db_session.execute(
            select(Enrollment).execution_options(populate_existing=True)
        )).scalar_one()
        assert enrollment.completed_at is not None
        assert enrollment.completion_points_awarded == 500

    async def test_completed_course_is_not_rechecked(self, db_session, catalog):
        svc = CourseService(db_session)
        await svc.enroll(LEARNER, catalog["course"])
        await _complete_all(db_session, catalog)
        await svc.complete_course(LEARNER, catalog["course"], today=TODAY)

        # A new topic appears after completion; the claim still short-circuits
        db_session.add(Topic(id="topic-new", module_id=catalog["module"], title="Bonus", order=3))
        await db_session.commit()

        result = await svc.complete_course(LEARNER, catalog["course"], today=TODAY)
        assert result["awarded"] is False

    async def test_completion_is_not_streak_multiplied(self, db_session, catalog):
        # Problems and the quiz earlier today gave the learner a live streak
        svc = CourseService(db_session)
        await svc.enroll(LEARNER, catalog["course"])
        await _complete_all(db_session, catalog)

        result = await svc.complete_course(LEARNER, catalog["course"], today=TODAY)
        assert result["points"] == 500
