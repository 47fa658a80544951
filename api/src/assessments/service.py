"""Quiz scoring and attempt recording.

Business logic for:
- Scoring a submission (pure)
- Recording the attempt, repairing legacy single-attempt conflicts
- Attempt history with per-quiz numbering
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import NamedTuple
from uuid import UUID

import structlog

from src.progress.service import NotEnrolledError
from src.progress.store import EnrollmentStore
from src.utils import percent_of

from .errors import (
    AttemptPersistenceError,
    AttemptStoreError,
    DuplicateAttemptError,
    InvalidSubmissionError,
    QuizNotFoundError,
)
from .models import AnswerRecord, AttemptOutcome, Question, Quiz, QuizAttempt
from .schemas import AnswerResponse, AttemptResult
from .store import AttemptStore, QuizCatalog


logger = structlog.get_logger(__name__)

DEGRADED_WARNING = (
    "Your score was calculated, but this attempt may be missing from your history."
)
FAILED_WARNING = "Your score was calculated, but the attempt could not be saved."


# ==============================================================================
# Scoring
# ==============================================================================


def validate_submission(questions: Sequence[Question], selected_options: Sequence[int]) -> None:
    """Check one entry per question, each a valid index or the unanswered sentinel.

    Raises:
        InvalidSubmissionError: If the submission does not fit the quiz
    """
    if not questions:
        raise InvalidSubmissionError("Quiz has no questions")
    if len(selected_options) != len(questions):
        raise InvalidSubmissionError(
            f"Expected {len(questions)} answers, got {len(selected_options)}"
        )
    for index, (question, selected) in enumerate(zip(questions, selected_options, strict=True)):
        if not question.accepts(selected):
            raise InvalidSubmissionError(
                f"Answer {index + 1} is not a valid option"
            )


def build_answers(
    questions: Sequence[Question], selected_options: Sequence[int]
) -> list[AnswerRecord]:
    """Grade each answer in question order."""
    return [
        AnswerRecord(
            question_id=question.id,
            selected_option=selected,
            correct=selected == question.correct_option,
        )
        for question, selected in zip(questions, selected_options, strict=True)
    ]


def score_answers(answers: Sequence[AnswerRecord]) -> int:
    """score = round(100 * correct / questions)."""
    correct = sum(1 for answer in answers if answer.correct)
    return percent_of(correct, len(answers))


def headline_for(score: int) -> str:
    if score >= 80:
        return "Great job!"
    if score >= 60:
        return "Good effort!"
    return "Keep practicing!"


def feedback_for(score: int) -> str | None:
    if score == 100:
        return "Perfect score! You've unlocked the Perfect Quiz achievement!"
    if score >= 80:
        return "Great job! You've mastered this quiz!"
    return None


# ==============================================================================
# History
# ==============================================================================


class NumberedAttempt(NamedTuple):
    """Attempt annotated with its position in the quiz history."""

    attempt: QuizAttempt
    attempt_number: int
    total_attempts: int


def annotate_attempts(attempts: Sequence[QuizAttempt]) -> list[NumberedAttempt]:
    """Number attempts per quiz; the most recent attempt gets the highest number.

    Returns every attempt, most recent first.
    """
    by_quiz: dict[UUID, list[QuizAttempt]] = defaultdict(list)
    for attempt in attempts:
        by_quiz[attempt.quiz_id].append(attempt)

    numbered: list[NumberedAttempt] = []
    for quiz_attempts in by_quiz.values():
        quiz_attempts.sort(key=lambda a: a.created_at, reverse=True)
        total = len(quiz_attempts)
        numbered.extend(
            NumberedAttempt(attempt, total - index, total)
            for index, attempt in enumerate(quiz_attempts)
        )

    numbered.sort(key=lambda n: n.attempt.created_at, reverse=True)
    return numbered


# ==============================================================================
# Assessment Service
# ==============================================================================


class AssessmentService:
    """Scores quiz submissions and records them as attempt history."""

    def __init__(
        self,
        attempts: AttemptStore,
        quizzes: QuizCatalog,
        enrollments: EnrollmentStore,
    ):
        self.attempts = attempts
        self.quizzes = quizzes
        self.enrollments = enrollments

    async def submit_quiz(
        self, quiz_id: UUID, user_id: UUID, selected_options: Sequence[int]
    ) -> AttemptResult:
        """Load the quiz, check enrollment, then score and record the attempt.

        Raises:
            QuizNotFoundError: If the quiz does not exist
            NotEnrolledError: If the learner is not enrolled in the quiz's course
            InvalidSubmissionError: If the answers do not fit the quiz
        """
        quiz = await self.quizzes.get_quiz(quiz_id)
        if quiz is None:
            raise QuizNotFoundError()

        enrollment = await self.enrollments.get_enrollment(user_id, quiz.course_id)
        if enrollment is None:
            raise NotEnrolledError("You must be enrolled in this course to take the quiz")

        return await self.submit_attempt(quiz, user_id, selected_options)

    async def submit_attempt(
        self, quiz: Quiz, user_id: UUID, selected_options: Sequence[int]
    ) -> AttemptResult:
        """Score a submission and append it to the attempt history.

        The score is returned whatever happens to the write; persistence
        problems only show up in ``outcome`` and ``warning``.

        Raises:
            InvalidSubmissionError: If the answers do not fit the quiz
        """
        validate_submission(quiz.questions, selected_options)

        answers = build_answers(quiz.questions, selected_options)
        score = score_answers(answers)
        attempt = QuizAttempt(quiz_id=quiz.id, user_id=user_id, score=score, answers=answers)

        outcome = await self._record(attempt)
        warning = {
            AttemptOutcome.DEGRADED: DEGRADED_WARNING,
            AttemptOutcome.FAILED: FAILED_WARNING,
        }.get(outcome)

        logger.info(
            "quiz_attempt_submitted",
            quiz_id=str(quiz.id),
            user_id=str(user_id),
            attempt_id=str(attempt.id),
            score=score,
            outcome=outcome.value,
        )

        return AttemptResult(
            attempt_id=attempt.id,
            quiz_id=quiz.id,
            score=score,
            correct_count=sum(1 for a in answers if a.correct),
            question_count=len(answers),
            answers=[AnswerResponse.from_record(a) for a in answers],
            outcome=outcome,
            saved=outcome.persisted,
            warning=warning,
            headline=headline_for(score),
            feedback=feedback_for(score),
            created_at=attempt.created_at,
        )

    async def _record(self, attempt: QuizAttempt) -> AttemptOutcome:
        try:
            await self.attempts.insert_attempt(attempt)
        except DuplicateAttemptError:
            return await self._reconcile(attempt)
        except AttemptPersistenceError as e:
            return await self._insert_serialized(attempt, e)
        return AttemptOutcome.RECORDED

    async def _reconcile(self, attempt: QuizAttempt) -> AttemptOutcome:
        """Replace the row holding the legacy single-attempt slot, then retry once.

        Lookup, delete and retry are not atomic; a concurrent submission for the
        same (learner, quiz) can still lose an attempt.
        """
        logger.info(
            "quiz_attempt_conflict",
            quiz_id=str(attempt.quiz_id),
            user_id=str(attempt.user_id),
        )
        try:
            existing = await self.attempts.find_single(attempt.user_id, attempt.quiz_id)
            if existing is not None:
                await self.attempts.delete_attempt(existing)
                logger.info(
                    "quiz_attempt_replaced",
                    quiz_id=str(attempt.quiz_id),
                    replaced_attempt_id=str(existing.id),
                )
            attempt.created_at = datetime.now(UTC)
            await self.attempts.insert_attempt(attempt)
        except AttemptPersistenceError as e:
            logger.warning(
                "quiz_attempt_degraded",
                quiz_id=str(attempt.quiz_id),
                attempt_id=str(attempt.id),
                error=str(e),
                error_code=e.code,
            )
            return AttemptOutcome.DEGRADED
        return AttemptOutcome.RECORDED_AFTER_REPAIR

    async def _insert_serialized(
        self, attempt: QuizAttempt, cause: AttemptPersistenceError
    ) -> AttemptOutcome:
        """Retry once with the answers encoded as one opaque string."""
        logger.warning(
            "quiz_attempt_insert_failed",
            quiz_id=str(attempt.quiz_id),
            attempt_id=str(attempt.id),
            error=str(cause),
            error_code=cause.code,
        )
        try:
            await self.attempts.insert_attempt(attempt, serialized=True)
        except AttemptPersistenceError as e:
            logger.error(
                "quiz_attempt_failed",
                quiz_id=str(attempt.quiz_id),
                attempt_id=str(attempt.id),
                error=str(e),
                error_code=e.code,
            )
            return AttemptOutcome.FAILED
        return AttemptOutcome.RECORDED_SERIALIZED

    async def get_attempts(
        self, user_id: UUID, quiz_id: UUID | None = None
    ) -> list[QuizAttempt]:
        """Get a learner's attempts.

        Raises:
            AttemptStoreError: The attempt store could not be read
        """
        try:
            return await self.attempts.list_attempts(user_id, quiz_id)
        except Exception as e:
            logger.error("attempt_history_read_failed", user_id=str(user_id), error=str(e))
            raise AttemptStoreError() from e

    async def list_attempts(
        self, user_id: UUID, quiz_id: UUID | None = None
    ) -> list[NumberedAttempt]:
        """Get a learner's attempt history, numbered per quiz."""
        return annotate_attempts(await self.get_attempts(user_id, quiz_id))

    async def lookup_quizzes(self, quiz_ids: Iterable[UUID]) -> dict[UUID, Quiz]:
        """Look up quizzes by ID; missing or unreadable quizzes are left out."""
        quizzes: dict[UUID, Quiz] = {}
        for quiz_id in set(quiz_ids):
            try:
                quiz = await self.quizzes.get_quiz(quiz_id)
            except Exception as e:
                logger.warning("quiz_lookup_failed", quiz_id=str(quiz_id), error=str(e))
                continue
            if quiz is not None:
                quizzes[quiz_id] = quiz
        return quizzes
