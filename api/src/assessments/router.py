"""Quiz attempt API endpoints.

Provides routes for:
- Quiz submission (scoring + attempt recording)
- Attempt history
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.core.identity import CurrentLearner
from src.progress.dependencies import handle_progress_error
from src.progress.service import ProgressError

from .dependencies import AssessmentServiceDep, handle_assessment_error
from .errors import AssessmentError
from .schemas import (
    AnswerResponse,
    AttemptHistoryItem,
    AttemptHistoryResponse,
    AttemptResult,
    SubmitAttemptRequest,
)


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


@router.post(
    "/{quiz_id}/attempts",
    response_model=AttemptResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit quiz attempt",
)
async def submit_attempt(
    quiz_id: UUID,
    data: SubmitAttemptRequest,
    assessment_service: AssessmentServiceDep,
    user_id: CurrentLearner,
) -> AttemptResult:
    """Score a quiz submission and record it in the attempt history.

    The score is returned even when the attempt could not be saved; check
    ``saved`` and ``warning``.
    """
    try:
        return await assessment_service.submit_quiz(
            quiz_id, user_id, data.selected_options
        )
    except AssessmentError as e:
        raise handle_assessment_error(e) from e
    except ProgressError as e:
        raise handle_progress_error(e) from e


@router.get(
    "/attempts",
    response_model=AttemptHistoryResponse,
    summary="Get my quiz attempts",
)
async def get_my_attempts(
    assessment_service: AssessmentServiceDep,
    user_id: CurrentLearner,
    quiz_id: UUID | None = Query(None, description="Only attempts for this quiz"),
) -> AttemptHistoryResponse:
    """Get the learner's attempts, most recent first, numbered per quiz."""
    try:
        numbered = await assessment_service.list_attempts(user_id, quiz_id)
    except AssessmentError as e:
        raise handle_assessment_error(e) from e

    return AttemptHistoryResponse(
        items=[
            AttemptHistoryItem(
                attempt_id=n.attempt.id,
                quiz_id=n.attempt.quiz_id,
                score=n.attempt.score,
                attempt_number=n.attempt_number,
                total_attempts=n.total_attempts,
                answers=[AnswerResponse.from_record(a) for a in n.attempt.answers],
                created_at=n.attempt.created_at,
            )
            for n in numbered
        ],
        total=len(numbered),
    )
