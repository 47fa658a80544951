"""FastAPI dependencies for learner identity.

Authentication happens upstream; the gateway forwards the authenticated
learner's UUID in the X-User-ID header (or the ``user_id`` query parameter
for WebSocket connections, which cannot carry custom headers from browsers).
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status

from src.core.context import set_user_id
from src.core.middleware import USER_ID_HEADER


def parse_learner_id(raw: str | None) -> UUID | None:
    """Parse a learner UUID, None when missing or malformed."""
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


async def get_current_learner(request: Request) -> UUID:
    """Get the current learner from the identity header.

    Raises:
        HTTPException 401: If the header is missing or not a UUID
    """
    learner_id = parse_learner_id(request.headers.get(USER_ID_HEADER))
    if learner_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid learner identity",
        )

    set_user_id(str(learner_id))
    return learner_id


# Type alias for dependency injection
CurrentLearner = Annotated[UUID, Depends(get_current_learner)]
