"""Database models for quizzes and quiz attempts.

Cassandra table definitions for:
- Quizzes: question sets attached to a course (questions kept as JSON text)
- Quiz attempts: append-only attempt history, partitioned by learner
- Quiz attempt keys: single-attempt claim per (learner, quiz), only written
  when the legacy uniqueness constraint is enforced
"""

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, NamedTuple
from uuid import UUID, uuid4

from src.utils import ensure_utc_aware


# Selected option for a question left blank
UNANSWERED = -1


class AttemptOutcome(str, Enum):
    """How a submitted attempt ended up in the history."""

    RECORDED = "recorded"
    RECORDED_AFTER_REPAIR = "recorded_after_repair"
    RECORDED_SERIALIZED = "recorded_serialized"
    DEGRADED = "degraded"
    FAILED = "failed"

    @property
    def persisted(self) -> bool:
        return self in (
            AttemptOutcome.RECORDED,
            AttemptOutcome.RECORDED_AFTER_REPAIR,
            AttemptOutcome.RECORDED_SERIALIZED,
        )


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZZES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quizzes (
    quiz_id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    questions TEXT,
    created_at TIMESTAMP
)
"""

# Partition by learner: the dashboard reads every attempt of a learner at once,
# and a (learner, quiz) history is a clustering prefix.
QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    user_id UUID,
    quiz_id UUID,
    created_at TIMESTAMP,
    attempt_id UUID,
    score INT,
    answers LIST<FROZEN<TUPLE<TEXT, INT, BOOLEAN>>>,
    answers_raw TEXT,
    PRIMARY KEY ((user_id), quiz_id, created_at, attempt_id)
) WITH CLUSTERING ORDER BY (quiz_id ASC, created_at DESC, attempt_id ASC)
"""

# Written with IF NOT EXISTS; one row means (learner, quiz) already has an attempt
QUIZ_ATTEMPT_KEYS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempt_keys (
    user_id UUID,
    quiz_id UUID,
    attempt_id UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id, quiz_id))
)
"""

ASSESSMENT_TABLES_CQL = [
    QUIZZES_TABLE_CQL,
    QUIZ_ATTEMPTS_TABLE_CQL,
    QUIZ_ATTEMPT_KEYS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Question:
    """Quiz question.

    Attributes:
        id: Question identifier (generated when the stored question has none)
        text: Question prompt
        options: Answer options, indexed from 0
        correct_option: Index of the correct option
    """

    def __init__(
        self,
        text: str = "",
        options: list[str] | None = None,
        correct_option: int = 0,
        id: str | None = None,
    ):
        self.id = id or str(uuid4())
        self.text = text
        self.options = list(options or [])
        self.correct_option = correct_option

    def accepts(self, selected_option: int) -> bool:
        """Whether the selection is a valid option index or the unanswered sentinel."""
        return selected_option == UNANSWERED or 0 <= selected_option < len(self.options)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Question":
        """Normalize a stored question.

        Accepts camelCase keys as written by the authoring UI.
        """
        correct = data.get("correct_option", data.get("correctOption"))
        # bool is an int subclass but never a valid option index
        if not isinstance(correct, int) or isinstance(correct, bool):
            correct = 0
        options = data.get("options")
        return cls(
            id=data.get("id") or None,
            text=data.get("text") or "",
            options=options if isinstance(options, list) else [],
            correct_option=correct,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "text": self.text,
            "options": list(self.options),
            "correct_option": self.correct_option,
        }


class Quiz:
    """Quiz entity."""

    def __init__(
        self,
        course_id: UUID,
        title: str,
        questions: list[Question] | None = None,
        id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.course_id = course_id
        self.title = title
        self.questions = list(questions or [])
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)

    @staticmethod
    def parse_questions(raw: str | None) -> list[Question]:
        """Parse the questions JSON column, tolerating malformed content."""
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            return []
        if not isinstance(data, list):
            return []
        return [Question.from_dict(q) for q in data if isinstance(q, dict)]

    @classmethod
    def from_row(cls, row: Any) -> "Quiz":
        """Create Quiz from Cassandra row."""
        return cls(
            id=row.quiz_id,
            course_id=row.course_id,
            title=row.title or "",
            questions=cls.parse_questions(row.questions),
            created_at=row.created_at,
        )

    def __repr__(self) -> str:
        return f"<Quiz {self.id} questions={len(self.questions)}>"


class AnswerRecord(NamedTuple):
    """One graded answer inside an attempt."""

    question_id: str
    selected_option: int
    correct: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "selected_option": self.selected_option,
            "correct": self.correct,
        }


def serialize_answers(answers: list[AnswerRecord]) -> str:
    """Encode answers as an opaque JSON string."""
    return json.dumps([a.to_dict() for a in answers])


def deserialize_answers(raw: str | None) -> list[AnswerRecord]:
    """Decode answers stored by serialize_answers."""
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except ValueError:
        return []
    return [
        AnswerRecord(
            question_id=str(item.get("question_id", "")),
            selected_option=int(item.get("selected_option", UNANSWERED)),
            correct=bool(item.get("correct", False)),
        )
        for item in data
        if isinstance(item, dict)
    ]


class QuizAttempt:
    """Append-only quiz attempt entity.

    Attributes:
        id: Attempt UUID
        quiz_id: Quiz UUID
        user_id: Learner UUID
        score: Percentage of correct answers (0-100)
        answers: Graded answers in question order
        created_at: Submission timestamp
    """

    def __init__(
        self,
        quiz_id: UUID,
        user_id: UUID,
        score: int,
        answers: list[AnswerRecord] | None = None,
        id: UUID | None = None,
        created_at: datetime | None = None,
    ):
        self.id = id or uuid4()
        self.quiz_id = quiz_id
        self.user_id = user_id
        self.score = score
        self.answers = list(answers or [])
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt from Cassandra row (structured or serialized answers)."""
        if row.answers:
            answers = [AnswerRecord(*item) for item in row.answers]
        else:
            answers = deserialize_answers(getattr(row, "answers_raw", None))
        return cls(
            id=row.attempt_id,
            quiz_id=row.quiz_id,
            user_id=row.user_id,
            score=row.score or 0,
            answers=answers,
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "user_id": self.user_id,
            "score": self.score,
            "answers": [a.to_dict() for a in self.answers],
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<QuizAttempt {self.id} quiz={self.quiz_id} score={self.score}>"
