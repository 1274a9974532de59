"""Progression API endpoints: topic steps, problem submissions, courses."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from levelup.auth.dependencies import CurrentUser, get_current_user
from levelup.database import get_session
from levelup.gamification.ledger import get_or_create_learner
from levelup.progression.courses import CourseService
from levelup.progression.grading import GradingService, get_grader
from levelup.progression.schemas import (
    AlgorithmResultResponse,
    AlgorithmSubmitRequest,
    CodeResultResponse,
    CodeSubmitRequest,
    CourseCompletionResponse,
    CourseProgressResponse,
    EnrollmentResponse,
    QuizResultResponse,
    QuizSubmitRequest,
    TopicProgressResponse,
)
from levelup.progression.service import ProgressionService
from levelup.redis_client import get_redis_or_none

router = APIRouter(prefix="/api/v1", tags=["Progression"])


# ── Topics ──


@router.get("/topics/{topic_id}/progress", response_model=TopicProgressResponse)
async def get_topic_progress(
    topic_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    svc = ProgressionService(db)
    return await svc.get_topic_progress(user.id, topic_id)


@router.post("/topics/{topic_id}/video", response_model=TopicProgressResponse)
async def mark_video_watched(
    topic_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark the topic video as watched (idempotent)."""
    svc = ProgressionService(db, redis=get_redis_or_none())
    result = await svc.mark_video_watched(user.id, topic_id)
    await db.commit()
    return result


@router.post("/topics/{topic_id}/quiz", response_model=QuizResultResponse)
async def submit_quiz(
    topic_id: str,
    body: QuizSubmitRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Submit a quiz score. Passing (>= 70%) pays 40 points once per topic."""
    await get_or_create_learner(db, user.id, display_name=user.display_name)
    svc = ProgressionService(db, redis=get_redis_or_none())
    try:
        result = await svc.submit_quiz(user.id, topic_id, body.score)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return result


# ── Problems ──


@router.post("/problems/{problem_id}/algorithm", response_model=AlgorithmResultResponse)
async def submit_algorithm(
    problem_id: str,
    body: AlgorithmSubmitRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    grader: GradingService = Depends(get_grader),
):
    """Grade an algorithm explanation. Approval unlocks the code step."""
    svc = ProgressionService(db)
    try:
        result = await svc.submit_algorithm(user.id, problem_id, body.explanation, grader)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return result


@router.post("/problems/{problem_id}/code", response_model=CodeResultResponse)
async def submit_code(
    problem_id: str,
    body: CodeSubmitRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    grader: GradingService = Depends(get_grader),
):
    """Grade code against the problem's test cases. Passing pays by difficulty once."""
    await get_or_create_learner(db, user.id, display_name=user.display_name)
    svc = ProgressionService(db, redis=get_redis_or_none())
    try:
        result = await svc.submit_code(user.id, problem_id, body.code, body.language, grader)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return result


# ── Courses ──


@router.post("/courses/{course_id}/enroll", response_model=EnrollmentResponse)
async def enroll(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    svc = CourseService(db)
    result = await svc.enroll(user.id, course_id)
    await db.commit()
    return result


@router.get("/courses/{course_id}/progress", response_model=CourseProgressResponse)
async def get_course_progress(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    svc = CourseService(db)
    return await svc.get_course_progress(user.id, course_id)


@router.post("/courses/{course_id}/complete", response_model=CourseCompletionResponse)
async def complete_course(
    course_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Claim the course completion reward. Every topic must be complete."""
    await get_or_create_learner(db, user.id, display_name=user.display_name)
    svc = CourseService(db, redis=get_redis_or_none())
    result = await svc.complete_course(user.id, course_id)
    await db.commit()
    return result
