"""Achievement models.

Achievements are derived on every read from enrollments and quiz attempts;
nothing here is persisted.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Achievement:
    """Badge state for display."""

    title: str
    description: str
    achieved: bool = False


# Display order
FIRST_COURSE_COMPLETED = "First Course Completed"
FAST_LEARNER = "Fast Learner"
KNOWLEDGE_SEEKER = "Knowledge Seeker"
PERFECT_QUIZ = "Perfect Quiz"

DESCRIPTIONS: dict[str, str] = {
    FIRST_COURSE_COMPLETED: "Complete your first course",
    FAST_LEARNER: "Enroll in 2 courses within a week",
    KNOWLEDGE_SEEKER: "Enroll in 3 different courses",
    PERFECT_QUIZ: "Score 100% on any quiz",
}

# Thresholds
FAST_LEARNER_MIN_ENROLLMENTS = 2
KNOWLEDGE_SEEKER_MIN_ENROLLMENTS = 3
