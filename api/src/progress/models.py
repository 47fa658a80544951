"""Database models for learner progress tracking.

Cassandra table definitions for:
- Enrollments: one row per (user, course) carrying overall progress and the
  per-lesson percent map
- Course lessons: lesson roster per course, used to count lessons

Plus the playback vocabulary shared by the monitor and its adapters.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.utils import clamp_percent, ensure_utc_aware, percent_of


# Percentages at which lesson progress is persisted
CHECKPOINTS: tuple[int, ...] = (25, 50, 75, 90, 100)

# Lesson percent at or above which a lesson counts as completed
COMPLETION_THRESHOLD = 90


class PlaybackState(str, Enum):
    """Media playback state reported by a player adapter."""

    UNSTARTED = "unstarted"
    PLAYING = "playing"
    PAUSED = "paused"
    BUFFERING = "buffering"
    ENDED = "ended"


# ==============================================================================
# Helper Functions
# ==============================================================================


def count_completed_lessons(
    lessons_progress: Mapping[UUID, int],
    threshold: int = COMPLETION_THRESHOLD,
) -> int:
    """Count lessons whose percent reached the completion threshold."""
    return sum(1 for percent in lessons_progress.values() if percent >= threshold)


def compute_overall_progress(
    lessons_progress: Mapping[UUID, int],
    total_lessons: int,
    threshold: int = COMPLETION_THRESHOLD,
) -> int:
    """Fold per-lesson percents into one course percentage.

    overall = round(100 * completed / total_lessons), 0 for an empty roster.
    Lessons no longer on the roster can still sit in the map, so the result is
    clamped to 100.
    """
    completed = count_completed_lessons(lessons_progress, threshold)
    return clamp_percent(percent_of(completed, total_lessons))


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# One row per learner and course; partition by user so a learner's
# enrollments are read with a single query.
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    enrollment_id UUID,
    overall_progress INT,
    lessons_progress MAP<UUID, INT>,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

# Lesson roster per course, ordered by position
COURSE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_lessons (
    course_id UUID,
    position INT,
    lesson_id UUID,
    PRIMARY KEY (course_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

# Course titles shown in the activity feed
COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    course_id UUID PRIMARY KEY,
    title TEXT
)
"""

PROGRESS_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    COURSE_LESSONS_TABLE_CQL,
    COURSES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """Course enrollment entity.

    Created by the enrollment flow, mutated only by the progress aggregator.

    Attributes:
        id: Enrollment UUID
        user_id: Learner UUID
        course_id: Course UUID
        overall_progress: Course percentage (0-100) at the last aggregation
        lessons_progress: Lesson UUID -> percent watched (0-100)
        created_at: Enrollment timestamp
        updated_at: Last progress write timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        overall_progress: int = 0,
        lessons_progress: Mapping[UUID, int] | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.user_id = user_id
        self.course_id = course_id
        self.overall_progress = overall_progress
        self.lessons_progress: dict[UUID, int] = dict(lessons_progress or {})
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at)

    def lesson_percent(self, lesson_id: UUID) -> int:
        """Percent watched for a lesson, 0 when never recorded."""
        return self.lessons_progress.get(lesson_id, 0)

    @property
    def is_completed(self) -> bool:
        """Check if the course is fully completed."""
        return self.overall_progress >= 100

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.enrollment_id,
            user_id=row.user_id,
            course_id=row.course_id,
            overall_progress=row.overall_progress or 0,
            lessons_progress=dict(row.lessons_progress or {}),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "overall_progress": self.overall_progress,
            "lessons_progress": dict(self.lessons_progress),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment user={self.user_id} course={self.course_id} "
            f"{self.overall_progress}%>"
        )
