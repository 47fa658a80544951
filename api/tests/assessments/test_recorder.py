"""Tests for quiz scoring and attempt recording."""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import pytest

from src.assessments.errors import (
    AttemptRejectedError,
    AttemptStoreError,
    DuplicateAttemptError,
    InvalidSubmissionError,
    QuizNotFoundError,
)
from src.assessments.models import AttemptOutcome, Question, Quiz, QuizAttempt
from src.assessments.service import (
    DEGRADED_WARNING,
    FAILED_WARNING,
    AssessmentService,
    annotate_attempts,
    build_answers,
    feedback_for,
    headline_for,
    score_answers,
)
from src.progress.models import Enrollment
from src.progress.service import NotEnrolledError


# ==============================================================================
# Scoring
# ==============================================================================


class TestScoring:
    """Tests for the pure scoring functions."""

    def test_partial_score(self, quiz: Quiz) -> None:
        answers = build_answers(quiz.questions, [1, -1, 0, 2, 1])

        assert [a.correct for a in answers] == [True, False, True, True, False]
        assert score_answers(answers) == 60

    def test_unanswered_is_incorrect(self, quiz: Quiz) -> None:
        answers = build_answers(quiz.questions, [-1] * 5)

        assert score_answers(answers) == 0

    def test_score_rounds_half_up(self) -> None:
        questions = [
            Question(text=f"Q{i}", options=["a", "b"], correct_option=0) for i in range(8)
        ]
        # 1 of 8 = 12.5%
        answers = build_answers(questions, [0] + [1] * 7)

        assert score_answers(answers) == 13

    @pytest.mark.parametrize(
        ("score", "headline"),
        [
            (100, "Great job!"),
            (80, "Great job!"),
            (79, "Good effort!"),
            (60, "Good effort!"),
            (59, "Keep practicing!"),
        ],
    )
    def test_headline(self, score: int, headline: str) -> None:
        assert headline_for(score) == headline

    def test_feedback(self) -> None:
        assert "Perfect Quiz" in feedback_for(100)
        assert feedback_for(80) == "Great job! You've mastered this quiz!"
        assert feedback_for(79) is None


class TestSubmissionValidation:
    """Tests for submissions that do not fit the quiz."""

    @pytest.mark.asyncio
    async def test_wrong_answer_count(
        self, assessment_service: AssessmentService, quiz: Quiz, user_id: UUID
    ) -> None:
        with pytest.raises(InvalidSubmissionError):
            await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0])

    @pytest.mark.asyncio
    async def test_option_out_of_range(
        self, assessment_service: AssessmentService, quiz: Quiz, user_id: UUID
    ) -> None:
        with pytest.raises(InvalidSubmissionError):
            await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 4])

    @pytest.mark.asyncio
    async def test_quiz_without_questions(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        course_id: UUID,
        user_id: UUID,
    ) -> None:
        empty = Quiz(course_id=course_id, title="Empty")

        with pytest.raises(InvalidSubmissionError):
            await assessment_service.submit_attempt(empty, user_id, [])
        assert attempt_store.insert_calls == []


# ==============================================================================
# Recording
# ==============================================================================


class TestRecordAttempt:
    """Tests for the attempt recorder paths."""

    @pytest.mark.asyncio
    async def test_recorded(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        result = await assessment_service.submit_attempt(quiz, user_id, [1, -1, 0, 2, 1])

        assert result.score == 60
        assert result.correct_count == 3
        assert result.question_count == 5
        assert result.outcome is AttemptOutcome.RECORDED
        assert result.saved is True
        assert result.warning is None
        assert result.headline == "Good effort!"
        assert len(attempt_store.rows) == 1
        assert attempt_store.rows[0].score == 60

    @pytest.mark.asyncio
    async def test_perfect_score(
        self, assessment_service: AssessmentService, quiz: Quiz, user_id: UUID
    ) -> None:
        result = await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 0])

        assert result.score == 100
        assert result.feedback == (
            "Perfect score! You've unlocked the Perfect Quiz achievement!"
        )

    @pytest.mark.asyncio
    async def test_retakes_are_appended(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        await assessment_service.submit_attempt(quiz, user_id, [0, 0, 0, 0, 0])
        await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 0])

        assert [r.score for r in attempt_store.rows] == [40, 100]

    @pytest.mark.asyncio
    async def test_legacy_conflict_replaces_previous_attempt(
        self,
        attempt_store,
        quiz_catalog,
        enrollment_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        attempt_store.legacy_unique = True
        service = AssessmentService(attempt_store, quiz_catalog, enrollment_store)

        first = await service.submit_attempt(quiz, user_id, [0, 0, 0, 0, 0])
        second = await service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 0])

        assert first.score == 40
        assert second.score == 100
        assert first.outcome is AttemptOutcome.RECORDED
        assert second.outcome is AttemptOutcome.RECORDED_AFTER_REPAIR
        assert second.saved is True
        assert [r.id for r in attempt_store.rows] == [second.attempt_id]
        assert attempt_store.deleted == [first.attempt_id]

    @pytest.mark.asyncio
    async def test_conflict_without_existing_row_retries(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        attempt_store.fail_next = [DuplicateAttemptError()]

        result = await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 0])

        assert result.outcome is AttemptOutcome.RECORDED_AFTER_REPAIR
        assert attempt_store.deleted == []
        assert len(attempt_store.rows) == 1

    @pytest.mark.asyncio
    async def test_failed_repair_is_degraded(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        attempt_store.fail_next = [DuplicateAttemptError(), AttemptStoreError("timeout")]

        result = await assessment_service.submit_attempt(quiz, user_id, [1, -1, 0, 2, 1])

        assert result.score == 60
        assert result.outcome is AttemptOutcome.DEGRADED
        assert result.saved is False
        assert result.warning == DEGRADED_WARNING
        assert attempt_store.rows == []

    @pytest.mark.asyncio
    async def test_rejected_payload_falls_back_to_serialized(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        attempt_store.fail_next = [AttemptRejectedError("bad tuple")]

        result = await assessment_service.submit_attempt(quiz, user_id, [1, -1, 0, 2, 1])

        assert result.outcome is AttemptOutcome.RECORDED_SERIALIZED
        assert result.saved is True
        assert attempt_store.insert_calls == [False, True]
        assert attempt_store.serialized == {result.attempt_id}

    @pytest.mark.asyncio
    async def test_store_error_falls_back_to_serialized(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        attempt_store.fail_next = [AttemptStoreError("unavailable")]

        result = await assessment_service.submit_attempt(quiz, user_id, [1, -1, 0, 2, 1])

        assert result.outcome is AttemptOutcome.RECORDED_SERIALIZED

    @pytest.mark.asyncio
    async def test_both_inserts_fail(
        self,
        assessment_service: AssessmentService,
        attempt_store,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        attempt_store.fail_next = [
            AttemptRejectedError("bad tuple"),
            AttemptStoreError("unavailable"),
        ]

        result = await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 0])

        assert result.score == 100
        assert result.outcome is AttemptOutcome.FAILED
        assert result.saved is False
        assert result.warning == FAILED_WARNING
        assert attempt_store.rows == []


class TestSubmitQuiz:
    """Tests for submit_quiz preconditions."""

    @pytest.mark.asyncio
    async def test_quiz_not_found(
        self, assessment_service: AssessmentService, user_id: UUID
    ) -> None:
        with pytest.raises(QuizNotFoundError):
            await assessment_service.submit_quiz(uuid4(), user_id, [0])

    @pytest.mark.asyncio
    async def test_not_enrolled(
        self, assessment_service: AssessmentService, quiz: Quiz, user_id: UUID
    ) -> None:
        with pytest.raises(NotEnrolledError):
            await assessment_service.submit_quiz(quiz.id, user_id, [1, 3, 0, 2, 0])

    @pytest.mark.asyncio
    async def test_enrolled_learner(
        self,
        assessment_service: AssessmentService,
        enrollment: Enrollment,
        quiz: Quiz,
        user_id: UUID,
    ) -> None:
        result = await assessment_service.submit_quiz(quiz.id, user_id, [1, 3, 0, 2, 0])

        assert result.quiz_id == quiz.id
        assert result.score == 100


# ==============================================================================
# History
# ==============================================================================


class TestAttemptHistory:
    """Tests for per-quiz attempt numbering."""

    def test_numbering_per_quiz(self, user_id: UUID) -> None:
        quiz_a, quiz_b = uuid4(), uuid4()
        base = datetime(2024, 3, 1, tzinfo=UTC)
        a1 = QuizAttempt(quiz_a, user_id, 40, created_at=base)
        b1 = QuizAttempt(quiz_b, user_id, 80, created_at=base + timedelta(hours=1))
        a2 = QuizAttempt(quiz_a, user_id, 60, created_at=base + timedelta(hours=2))
        a3 = QuizAttempt(quiz_a, user_id, 100, created_at=base + timedelta(hours=3))

        numbered = annotate_attempts([a1, b1, a2, a3])

        assert [n.attempt for n in numbered] == [a3, a2, b1, a1]
        assert [(n.attempt_number, n.total_attempts) for n in numbered] == [
            (3, 3),
            (2, 3),
            (1, 1),
            (1, 3),
        ]

    def test_empty_history(self) -> None:
        assert annotate_attempts([]) == []

    @pytest.mark.asyncio
    async def test_list_attempts_filters_by_quiz(
        self,
        assessment_service: AssessmentService,
        quiz: Quiz,
        course_id: UUID,
        user_id: UUID,
    ) -> None:
        other = Quiz(
            course_id=course_id,
            title="Other",
            questions=[Question(text="Q", options=["a", "b"], correct_option=1)],
        )
        await assessment_service.submit_attempt(quiz, user_id, [1, 3, 0, 2, 0])
        await assessment_service.submit_attempt(other, user_id, [1])

        numbered = await assessment_service.list_attempts(user_id, quiz.id)

        assert len(numbered) == 1
        assert numbered[0].attempt.quiz_id == quiz.id

    @pytest.mark.asyncio
    async def test_unreadable_history_raises_store_error(
        self, assessment_service: AssessmentService, attempt_store, user_id: UUID
    ) -> None:
        attempt_store.fail_reads = True

        with pytest.raises(AttemptStoreError):
            await assessment_service.get_attempts(user_id)

    @pytest.mark.asyncio
    async def test_lookup_quizzes_skips_unknown(
        self, assessment_service: AssessmentService, quiz: Quiz
    ) -> None:
        quizzes = await assessment_service.lookup_quizzes([quiz.id, uuid4()])

        assert quizzes == {quiz.id: quiz}
