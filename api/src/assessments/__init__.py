"""Quiz assessment module.

Provides:
- Quiz scoring
- Append-only attempt history with legacy uniqueness repair
- Attempt numbering for the history view
"""

from .errors import (
    AssessmentError,
    AttemptRejectedError,
    AttemptStoreError,
    DuplicateAttemptError,
    InvalidSubmissionError,
    QuizNotFoundError,
)
from .models import (
    ASSESSMENT_TABLES_CQL,
    UNANSWERED,
    AnswerRecord,
    AttemptOutcome,
    Question,
    Quiz,
    QuizAttempt,
)


__all__ = [
    "ASSESSMENT_TABLES_CQL",
    "UNANSWERED",
    "AnswerRecord",
    "AssessmentError",
    "AttemptOutcome",
    "AttemptRejectedError",
    "AttemptStoreError",
    "DuplicateAttemptError",
    "InvalidSubmissionError",
    "Question",
    "Quiz",
    "QuizAttempt",
    "QuizNotFoundError",
]
