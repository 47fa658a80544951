"""Pydantic schemas for learner progress.

Request and response models for:
- Explicit lesson progress reports
- Playback messages on the progress WebSocket
- Progress and enrollment queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Enrollment, PlaybackState


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class RecordLessonProgressRequest(BaseModel):
    """Explicit lesson progress report."""

    course_id: UUID = Field(..., description="Course UUID")
    lesson_id: UUID = Field(..., description="Lesson UUID")
    percent: int = Field(..., ge=0, le=100, description="Percent watched")


class RecordLessonProgressResponse(BaseModel):
    """Outcome of a progress report.

    ``recorded`` is False when the report was dropped because another write
    for the learner was in flight, or when the store rejected the write.
    """

    recorded: bool
    lesson_id: UUID
    percent: int
    overall_progress: int | None = None


class LessonProgressCheckResponse(BaseModel):
    """Quick progress check for a single lesson (used on lesson load)."""

    lesson_id: UUID
    progress_percent: int
    completed: bool


class PlaybackMessage(BaseModel):
    """Player report pushed by the client over the progress WebSocket."""

    state: PlaybackState | None = None
    position: float | None = Field(None, ge=0, description="Position in seconds")
    duration: float | None = Field(None, description="Media duration in seconds")


# ==============================================================================
# Course Progress Schemas
# ==============================================================================


class LessonProgressSummary(BaseModel):
    """Compact lesson progress for listing."""

    lesson_id: UUID
    progress_percent: int
    completed: bool


class CourseProgressResponse(BaseModel):
    """Overall course progress with every recorded lesson."""

    course_id: UUID
    overall_progress: int = Field(description="0-100 percentage")
    lessons_completed: int
    lessons_total: int
    lessons: list[LessonProgressSummary] = Field(default_factory=list)
    updated_at: datetime | None = None


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    user_id: UUID
    overall_progress: int
    lessons_progress: dict[UUID, int] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            course_id=entity.course_id,
            user_id=entity.user_id,
            overall_progress=entity.overall_progress,
            lessons_progress=entity.lessons_progress,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class EnrollmentListResponse(BaseModel):
    """List of learner enrollments."""

    items: list[EnrollmentResponse]
    total: int
