"""Achievement API endpoints."""

from fastapi import APIRouter

from src.assessments.dependencies import AssessmentServiceDep, handle_assessment_error
from src.assessments.errors import AssessmentError
from src.config.settings import get_settings
from src.core.identity import CurrentLearner
from src.progress.dependencies import ProgressServiceDep

from .schemas import AchievementListResponse, AchievementResponse
from .service import evaluate


router = APIRouter(prefix="/v1/achievements", tags=["achievements"])


@router.get(
    "",
    response_model=AchievementListResponse,
    summary="Get my achievements",
)
async def get_my_achievements(
    progress_service: ProgressServiceDep,
    assessment_service: AssessmentServiceDep,
    user_id: CurrentLearner,
) -> AchievementListResponse:
    """Evaluate achievements from the learner's enrollments and quiz attempts."""
    enrollments = await progress_service.list_enrollments(user_id)
    try:
        attempts = await assessment_service.get_attempts(user_id)
    except AssessmentError as e:
        raise handle_assessment_error(e) from e

    achievements = evaluate(
        enrollments,
        attempts,
        window_days=get_settings().achievement_fast_learner_window_days,
    )
    return AchievementListResponse(
        items=[AchievementResponse.from_entity(a) for a in achievements],
        achieved=sum(1 for a in achievements if a.achieved),
        total=len(achievements),
    )
