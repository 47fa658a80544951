"""Achievement evaluation.

Pure functions over already loaded enrollments and attempts; safe to call
on every read.
"""

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from src.assessments.models import QuizAttempt
from src.progress.models import Enrollment

from .models import (
    DESCRIPTIONS,
    FAST_LEARNER,
    FAST_LEARNER_MIN_ENROLLMENTS,
    FIRST_COURSE_COMPLETED,
    KNOWLEDGE_SEEKER,
    KNOWLEDGE_SEEKER_MIN_ENROLLMENTS,
    PERFECT_QUIZ,
    Achievement,
)


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed, rounded down."""
    return (now - moment) // timedelta(days=1)


def evaluate(
    enrollments: Sequence[Enrollment],
    attempts: Sequence[QuizAttempt],
    now: datetime | None = None,
    window_days: int = 7,
) -> list[Achievement]:
    """Derive every achievement, in display order.

    Args:
        enrollments: Learner enrollments
        attempts: Learner quiz attempts
        now: Reference time (defaults to current UTC time)
        window_days: Window for counting recent enrollments (Fast Learner)
    """
    now = now or datetime.now(UTC)

    recent = sum(1 for e in enrollments if days_since(e.created_at, now) < window_days)

    achieved = {
        FIRST_COURSE_COMPLETED: any(e.overall_progress >= 100 for e in enrollments),
        FAST_LEARNER: recent >= FAST_LEARNER_MIN_ENROLLMENTS,
        KNOWLEDGE_SEEKER: len(enrollments) >= KNOWLEDGE_SEEKER_MIN_ENROLLMENTS,
        PERFECT_QUIZ: any(a.score == 100 for a in attempts),
    }

    return [
        Achievement(title=title, description=description, achieved=achieved[title])
        for title, description in DESCRIPTIONS.items()
    ]
