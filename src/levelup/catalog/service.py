"""Read helpers over the course catalog (courses, modules, topics, problems)."""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.db.models import Course, CourseModule, Problem, Topic
from levelup.errors import NotFoundError


async def get_course(db: AsyncSession, course_id: str) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise NotFoundError(f"Course {course_id} not found")
    return course


async def get_topic(db: AsyncSession, topic_id: str) -> Topic:
    topic = await db.get(Topic, topic_id)
    if topic is None:
        raise NotFoundError(f"Topic {topic_id} not found")
    return topic


async def get_problem(db: AsyncSession, problem_id: str) -> Problem:
    problem = await db.get(Problem, problem_id)
    if problem is None:
        raise NotFoundError(f"Problem {problem_id} not found")
    return problem


async def count_topic_problems(db: AsyncSession, topic_id: str) -> int:
    result = await db.execute(select(func.count(Problem.id)).where(Problem.topic_id == topic_id))
    return result.scalar() or 0


async def course_topic_ids(db: AsyncSession, course_id: str) -> list[str]:
    """Topic ids under every module of a course, in module then topic order."""
    result = await db.execute(
        select(Topic.id)
        .join(CourseModule, Topic.module_id == CourseModule.id)
        .where(CourseModule.course_id == course_id)
        .order_by(CourseModule.order, Topic.order)
    )
    return list(result.scalars().all())


async def problem_counts_for_topics(db: AsyncSession, topic_ids: list[str]) -> dict[str, int]:
    """Problem count per topic; topics without problems map to 0."""
    if not topic_ids:
        return {}
    result = await db.execute(
        select(Problem.topic_id, func.count(Problem.id))
        .where(Problem.topic_id.in_(topic_ids))
        .group_by(Problem.topic_id)
    )
    counts = {topic_id: 0 for topic_id in topic_ids}
    counts.update({topic_id: count for topic_id, count in result.all()})
    return counts
