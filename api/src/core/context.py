"""Request and learner context management using contextvars.

Each HTTP request or playback connection gets a unique ID plus optional
learner/course/lesson identifiers that are injected into every log entry
without passing them through the call stack.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


# Context variables for request tracking
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)
course_id_var: ContextVar[str | None] = ContextVar("course_id", default=None)
lesson_id_var: ContextVar[str | None] = ContextVar("lesson_id", default=None)

_CONTEXT_VARS: dict[str, ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "trace_id": trace_id_var,
    "course_id": course_id_var,
    "lesson_id": lesson_id_var,
}


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the user ID for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def set_trace_id(trace_id: str | None) -> None:
    """Set the trace ID for the current context."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Get all non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}
    for name, var in _CONTEXT_VARS.items():
        value = var.get()
        if value:
            context[name] = value
    return context


def clear_context() -> None:
    """Clear all context variables.

    Called at the end of each request to prevent context leakage between
    requests.
    """
    request_id_var.set("")
    for name, var in _CONTEXT_VARS.items():
        if name != "request_id":
            var.set(None)


class LearnerContext:
    """Context manager scoping log fields to one learner connection.

    Usage:
        with LearnerContext(user_id=user_id, course_id=course_id, lesson_id=lesson_id):
            logger.info("playback_connected")  # includes user/course/lesson ids
    """

    def __init__(
        self,
        user_id: str | UUID | None = None,
        course_id: str | UUID | None = None,
        lesson_id: str | UUID | None = None,
        request_id: str | None = None,
    ) -> None:
        self._values = {
            "request_id": request_id or generate_request_id(),
            "user_id": user_id,
            "course_id": course_id,
            "lesson_id": lesson_id,
        }
        self._tokens: dict[str, Any] = {}

    def __enter__(self) -> "LearnerContext":
        """Enter context and set variables."""
        for name, value in self._values.items():
            if value is not None:
                self._tokens[name] = _CONTEXT_VARS[name].set(str(value))
        return self

    def __exit__(self, *_: object) -> None:
        """Exit context and restore previous values."""
        for name, token in self._tokens.items():
            _CONTEXT_VARS[name].reset(token)
        self._tokens.clear()
