"""FastAPI dependencies for assessments.

Provides dependency injection for:
- Assessment service
- Error handlers
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .errors import AssessmentError
from .service import AssessmentService


async def get_assessment_service(request: Request) -> AssessmentService:
    """Get assessment service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "assessment_service") or not app_state.assessment_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assessment service not available",
        )
    return app_state.assessment_service


# Type alias for dependency injection
AssessmentServiceDep = Annotated[AssessmentService, Depends(get_assessment_service)]


def handle_assessment_error(error: AssessmentError) -> HTTPException:
    """Convert assessment errors to HTTP exceptions."""
    status_map = {
        "quiz_not_found": status.HTTP_404_NOT_FOUND,
        "invalid_submission": status.HTTP_422_UNPROCESSABLE_ENTITY,
        "attempt_store_error": status.HTTP_503_SERVICE_UNAVAILABLE,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
