"""Learner progress API endpoints.

Provides routes for:
- Explicit lesson progress reports
- Lesson and course progress queries
- Enrollment listing
"""

from uuid import UUID

from fastapi import APIRouter

from src.core.identity import CurrentLearner

from .dependencies import ProgressServiceDep, handle_progress_error
from .schemas import (
    CourseProgressResponse,
    EnrollmentListResponse,
    EnrollmentResponse,
    LessonProgressCheckResponse,
    RecordLessonProgressRequest,
    RecordLessonProgressResponse,
)
from .service import ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Lesson Progress Endpoints
# ==============================================================================


@router.put(
    "/lessons",
    response_model=RecordLessonProgressResponse,
    summary="Report lesson progress",
)
async def record_lesson_progress(
    data: RecordLessonProgressRequest,
    progress_service: ProgressServiceDep,
    user_id: CurrentLearner,
) -> RecordLessonProgressResponse:
    """Record a lesson percent and recompute course progress.

    Reports arriving while another write for the learner is in flight are
    dropped (``recorded: false``); a later report carries a fresher percent.
    """
    try:
        enrollment = await progress_service.record_lesson_progress(
            user_id=user_id,
            course_id=data.course_id,
            lesson_id=data.lesson_id,
            percent=data.percent,
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return RecordLessonProgressResponse(
        recorded=enrollment is not None,
        lesson_id=data.lesson_id,
        percent=data.percent,
        overall_progress=enrollment.overall_progress if enrollment else None,
    )


@router.get(
    "/courses/{course_id}/lessons/{lesson_id}",
    response_model=LessonProgressCheckResponse,
    summary="Get lesson progress",
)
async def get_lesson_progress(
    course_id: UUID,
    lesson_id: UUID,
    progress_service: ProgressServiceDep,
    user_id: CurrentLearner,
) -> LessonProgressCheckResponse:
    """Get the stored percent for a single lesson."""
    try:
        percent = await progress_service.get_lesson_progress(
            user_id, course_id, lesson_id
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return LessonProgressCheckResponse(
        lesson_id=lesson_id,
        progress_percent=percent,
        completed=percent >= progress_service.completion_threshold,
    )


@router.get(
    "/courses/{course_id}",
    response_model=CourseProgressResponse,
    summary="Get course progress",
)
async def get_course_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user_id: CurrentLearner,
) -> CourseProgressResponse:
    """Get overall progress and per-lesson percents for a course."""
    try:
        return await progress_service.get_course_progress(user_id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.get(
    "",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    progress_service: ProgressServiceDep,
    user_id: CurrentLearner,
) -> EnrollmentListResponse:
    """Get all course enrollments for the current learner."""
    enrollments = await progress_service.list_enrollments(user_id)
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )
