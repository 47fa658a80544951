"""Activity feed API endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter

from src.assessments.dependencies import AssessmentServiceDep, handle_assessment_error
from src.assessments.errors import AssessmentError
from src.config.settings import get_settings
from src.core.identity import CurrentLearner
from src.progress.dependencies import ProgressServiceDep

from .schemas import ActivityFeedResponse, ActivityItemResponse
from .service import derive_activity, label_quiz_events


router = APIRouter(prefix="/v1/activity", tags=["activity"])


@router.get(
    "",
    response_model=ActivityFeedResponse,
    summary="Get my recent activity",
)
async def get_my_activity(
    progress_service: ProgressServiceDep,
    assessment_service: AssessmentServiceDep,
    user_id: CurrentLearner,
) -> ActivityFeedResponse:
    """Recent activity reconstructed from enrollments and quiz attempts."""
    enrollments = await progress_service.list_enrollments(user_id)
    try:
        attempts = await assessment_service.get_attempts(user_id)
    except AssessmentError as e:
        raise handle_assessment_error(e) from e

    course_titles = await progress_service.course_titles(
        e.course_id for e in enrollments
    )
    events = derive_activity(
        enrollments,
        attempts,
        limit=get_settings().activity_feed_limit,
        course_titles=course_titles,
    )

    quizzes = await assessment_service.lookup_quizzes(
        e.quiz_id for e in events if e.quiz_id
    )
    missing = {q.course_id for q in quizzes.values()} - course_titles.keys()
    if missing:
        course_titles |= await progress_service.course_titles(missing)

    now = datetime.now(UTC)
    return ActivityFeedResponse(
        items=[
            ActivityItemResponse.from_event(event, now)
            for event in label_quiz_events(events, quizzes, course_titles)
        ]
    )
