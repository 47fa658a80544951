"""Persistence for quizzes and quiz attempts.

Store failures are classified so the recorder can branch on them:
- DuplicateAttemptError: the single-attempt claim for (learner, quiz) is taken
- AttemptRejectedError: the store refused the statement (payload shape)
- AttemptStoreError: anything else (timeouts, unavailable nodes)
"""

from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

import structlog
from cassandra import InvalidRequest

from .errors import (
    AttemptPersistenceError,
    AttemptRejectedError,
    AttemptStoreError,
    DuplicateAttemptError,
)
from .models import Quiz, QuizAttempt, serialize_answers


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class AttemptStore(Protocol):
    """Append-only attempt history."""

    async def insert_attempt(self, attempt: QuizAttempt, serialized: bool = False) -> None:
        """Insert a new attempt.

        Args:
            attempt: Attempt to store
            serialized: Store answers as one opaque string instead of structured data

        Raises:
            DuplicateAttemptError: Legacy single-attempt constraint violated
            AttemptRejectedError: Store rejected the payload
            AttemptStoreError: Any other store failure
        """
        ...

    async def find_single(self, user_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        """Get the attempt holding the single-attempt claim for (learner, quiz)."""
        ...

    async def delete_attempt(self, attempt: QuizAttempt) -> None:
        """Delete an attempt and release its claim."""
        ...

    async def list_attempts(
        self, user_id: UUID, quiz_id: UUID | None = None
    ) -> list[QuizAttempt]:
        """Get a learner's attempts, optionally for one quiz."""
        ...


class QuizCatalog(Protocol):
    """Quiz lookup."""

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        """Get quiz by ID."""
        ...


class CassandraAttemptStore:
    """Attempt store backed by the quiz_attempts table.

    With ``legacy_unique`` set, every insert first claims the
    (learner, quiz) key with a lightweight transaction, reproducing the
    single-attempt constraint some deployments still enforce.
    """

    def __init__(self, session: "Session", keyspace: str, legacy_unique: bool = False):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self.legacy_unique = legacy_unique
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._insert_structured = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, quiz_id, created_at, attempt_id, score, answers)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._insert_serialized = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempts
            (user_id, quiz_id, created_at, attempt_id, score, answers_raw)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._get_attempt = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ? AND created_at = ? AND attempt_id = ?
        """)

        self._get_user_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ?
        """)

        self._get_quiz_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ?
        """)

        self._delete_attempt = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.quiz_attempts
            WHERE user_id = ? AND quiz_id = ? AND created_at = ? AND attempt_id = ?
        """)

        # Claim table: lightweight transactions only
        self._claim_key = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.quiz_attempt_keys
            (user_id, quiz_id, attempt_id, created_at)
            VALUES (?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get_key = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quiz_attempt_keys
            WHERE user_id = ? AND quiz_id = ?
        """)

        self._release_key = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.quiz_attempt_keys
            WHERE user_id = ? AND quiz_id = ?
            IF attempt_id = ?
        """)

    async def _execute(self, statement: Any, params: list[Any]) -> Any:
        """Execute a statement, classifying driver failures."""
        try:
            return await self.session.aexecute(statement, params)
        except InvalidRequest as e:
            raise AttemptRejectedError(str(e)) from e
        except Exception as e:
            raise AttemptStoreError(str(e)) from e

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def insert_attempt(self, attempt: QuizAttempt, serialized: bool = False) -> None:
        """Insert an attempt, claiming the legacy key first when enforced."""
        if self.legacy_unique:
            result = await self._execute(
                self._claim_key,
                [attempt.user_id, attempt.quiz_id, attempt.id, attempt.created_at],
            )
            if not result.was_applied:
                raise DuplicateAttemptError()

        if serialized:
            statement, answers = self._insert_serialized, serialize_answers(attempt.answers)
        else:
            statement = self._insert_structured
            answers = [tuple(a) for a in attempt.answers]

        try:
            await self._execute(
                statement,
                [
                    attempt.user_id,
                    attempt.quiz_id,
                    attempt.created_at,
                    attempt.id,
                    attempt.score,
                    answers,
                ],
            )
        except AttemptPersistenceError:
            if self.legacy_unique:
                await self._release_claim(attempt)
            raise

    async def delete_attempt(self, attempt: QuizAttempt) -> None:
        """Delete the attempt row and release its claim."""
        await self._execute(
            self._delete_attempt,
            [attempt.user_id, attempt.quiz_id, attempt.created_at, attempt.id],
        )
        if self.legacy_unique:
            await self._execute(
                self._release_key, [attempt.user_id, attempt.quiz_id, attempt.id]
            )

    async def _release_claim(self, attempt: QuizAttempt) -> None:
        try:
            await self._execute(
                self._release_key, [attempt.user_id, attempt.quiz_id, attempt.id]
            )
        except AttemptPersistenceError as e:
            logger.warning(
                "attempt_claim_release_failed",
                attempt_id=str(attempt.id),
                error=str(e),
            )

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def find_single(self, user_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        """Get the attempt referenced by the (learner, quiz) claim."""
        result = await self._execute(self._get_key, [user_id, quiz_id])
        key = result.one()
        if key is None:
            return None

        result = await self._execute(
            self._get_attempt, [user_id, quiz_id, key.created_at, key.attempt_id]
        )
        row = result.one()
        if row is not None:
            return QuizAttempt.from_row(row)

        # Claim without a row (insert failed after claiming): hand back a stub
        # so the caller can release it.
        return QuizAttempt(
            id=key.attempt_id,
            quiz_id=quiz_id,
            user_id=user_id,
            score=0,
            created_at=key.created_at,
        )

    async def list_attempts(
        self, user_id: UUID, quiz_id: UUID | None = None
    ) -> list[QuizAttempt]:
        """Get a learner's attempts, optionally filtered by quiz."""
        if quiz_id is None:
            rows = await self._execute(self._get_user_attempts, [user_id])
        else:
            rows = await self._execute(self._get_quiz_attempts, [user_id, quiz_id])
        return [QuizAttempt.from_row(row) for row in rows]


class CassandraQuizCatalog:
    """Quiz catalog backed by the quizzes table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._get_quiz = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.quizzes
            WHERE quiz_id = ?
        """)

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        """Get quiz by ID."""
        result = await self.session.aexecute(self._get_quiz, [quiz_id])
        row = result.one()
        return Quiz.from_row(row) if row else None
