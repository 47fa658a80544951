"""Pydantic schemas for the activity feed."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from .models import ActivityEvent, ActivityType
from .service import format_relative_time


class ActivityItemResponse(BaseModel):
    """Feed entry; ``time`` is a relative label computed at response time."""

    type: ActivityType
    course_id: UUID | None = None
    course: str | None = None
    item: str | None = None
    score: int | None = None
    occurred_at: datetime
    time: str

    @classmethod
    def from_event(cls, event: ActivityEvent, now: datetime) -> "ActivityItemResponse":
        return cls(
            type=event.type,
            course_id=event.course_id,
            course=event.course_title,
            item=event.item,
            score=event.score,
            occurred_at=event.occurred_at,
            time=format_relative_time(event.occurred_at, now),
        )


class ActivityFeedResponse(BaseModel):
    """Recent activity, most recent first."""

    items: list[ActivityItemResponse]
