"""Activity feed models.

There is no activity log: events are reconstructed from enrollments and quiz
attempts each time the feed is read.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class ActivityType(str, Enum):
    """Kind of derived activity."""

    COURSE_ENROLLED = "course_enrolled"
    LESSON_COMPLETED = "lesson_completed"
    QUIZ_COMPLETED = "quiz_completed"


@dataclass(frozen=True)
class ActivityEvent:
    """One entry of the recent-activity feed.

    ``occurred_at`` is a real timestamp; relative labels are produced only
    when the feed is rendered.
    """

    type: ActivityType
    occurred_at: datetime
    course_id: UUID | None = None
    course_title: str | None = None
    item: str | None = None
    quiz_id: UUID | None = None
    score: int | None = None
