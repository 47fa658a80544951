"""Activity feed derivation.

Best-effort reconstruction, not an authoritative log:
- every enrollment yields a "course_enrolled" event at its creation time
- an enrollment with progress yields a "lesson_completed" event one day
  after enrollment
- every quiz attempt yields a "quiz_completed" event at its real timestamp
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import UUID

from src.assessments.models import Quiz, QuizAttempt
from src.progress.models import Enrollment

from .models import ActivityEvent, ActivityType


# Offset of the synthesized lesson completion after enrollment
LESSON_COMPLETED_OFFSET = timedelta(days=1)


def derive_activity(
    enrollments: Sequence[Enrollment],
    attempts: Sequence[QuizAttempt],
    limit: int = 5,
    course_titles: Mapping[UUID, str] | None = None,
) -> list[ActivityEvent]:
    """Merge synthesized and real events, most recent first, capped at ``limit``."""
    titles = course_titles or {}
    events: list[ActivityEvent] = []

    for enrollment in enrollments:
        title = titles.get(enrollment.course_id)
        events.append(
            ActivityEvent(
                type=ActivityType.COURSE_ENROLLED,
                occurred_at=enrollment.created_at,
                course_id=enrollment.course_id,
                course_title=title,
            )
        )
        if enrollment.overall_progress > 0:
            events.append(
                ActivityEvent(
                    type=ActivityType.LESSON_COMPLETED,
                    occurred_at=enrollment.created_at + LESSON_COMPLETED_OFFSET,
                    course_id=enrollment.course_id,
                    course_title=title,
                    item=f"{title} Introduction" if title else None,
                )
            )

    events.extend(
        ActivityEvent(
            type=ActivityType.QUIZ_COMPLETED,
            occurred_at=attempt.created_at,
            quiz_id=attempt.quiz_id,
            score=attempt.score,
        )
        for attempt in attempts
    )

    events.sort(key=lambda e: e.occurred_at, reverse=True)
    return events[: max(limit, 0)]


def label_quiz_events(
    events: Sequence[ActivityEvent],
    quizzes: Mapping[UUID, Quiz],
    course_titles: Mapping[UUID, str] | None = None,
) -> list[ActivityEvent]:
    """Attach quiz titles and courses to quiz events where the quiz is known."""
    titles = course_titles or {}
    labelled = []
    for event in events:
        quiz = quizzes.get(event.quiz_id) if event.quiz_id else None
        if quiz is not None:
            event = replace(
                event,
                item=quiz.title or None,
                course_id=quiz.course_id,
                course_title=titles.get(quiz.course_id),
            )
        labelled.append(event)
    return labelled


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_relative_time(moment: datetime, now: datetime | None = None) -> str:
    """Human label such as "just now", "3 hours ago" or "Mar 4, 2024"."""
    now = now or datetime.now(UTC)
    seconds = math.floor((now - moment).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24
    weeks = days // 7
    months = days // 30

    if seconds < 30:
        return "just now"
    if seconds < 60:
        return f"{seconds} seconds ago"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    if days < 7:
        return _plural(days, "day")
    if weeks < 4:
        return _plural(weeks, "week")
    if months < 12:
        return _plural(months, "month")
    return f"{moment:%b} {moment.day}, {moment.year}"
