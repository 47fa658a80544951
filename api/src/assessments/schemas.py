"""Pydantic schemas for quiz submissions and attempt history."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import AnswerRecord, AttemptOutcome


# ==============================================================================
# Submission Schemas
# ==============================================================================


class SubmitAttemptRequest(BaseModel):
    """Quiz submission: one selected option per question, -1 when unanswered."""

    selected_options: list[int] = Field(
        ..., description="Selected option index per question (-1 = unanswered)"
    )


class AnswerResponse(BaseModel):
    """Graded answer."""

    question_id: str
    selected_option: int
    correct: bool

    @classmethod
    def from_record(cls, record: AnswerRecord) -> "AnswerResponse":
        return cls(
            question_id=record.question_id,
            selected_option=record.selected_option,
            correct=record.correct,
        )


class AttemptResult(BaseModel):
    """Result of a submission.

    The score is always present; ``outcome`` tells whether the attempt made
    it into the history, and ``warning`` is set when it may not have.
    """

    attempt_id: UUID
    quiz_id: UUID
    score: int = Field(description="0-100 percentage")
    correct_count: int
    question_count: int
    answers: list[AnswerResponse]
    outcome: AttemptOutcome
    saved: bool
    warning: str | None = None
    headline: str
    feedback: str | None = None
    created_at: datetime


# ==============================================================================
# History Schemas
# ==============================================================================


class AttemptHistoryItem(BaseModel):
    """Past attempt with its number within the quiz history."""

    attempt_id: UUID
    quiz_id: UUID
    score: int
    attempt_number: int = Field(description="1 = oldest attempt")
    total_attempts: int
    answers: list[AnswerResponse] = Field(default_factory=list)
    created_at: datetime


class AttemptHistoryResponse(BaseModel):
    """Attempt history of a learner, most recent first."""

    items: list[AttemptHistoryItem]
    total: int
