"""Tests for the Cassandra attempt store."""

import json
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra import InvalidRequest
from cassandra.cluster import Session

from src.assessments.errors import (
    AttemptRejectedError,
    AttemptStoreError,
    DuplicateAttemptError,
)
from src.assessments.models import AnswerRecord, QuizAttempt
from src.assessments.store import CassandraAttemptStore


@pytest.fixture
def mock_session():
    """Create mock Cassandra session; prepare returns the CQL text."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: cql)
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def attempt() -> QuizAttempt:
    return QuizAttempt(
        quiz_id=uuid4(),
        user_id=uuid4(),
        score=50,
        answers=[
            AnswerRecord("q1", 1, True),
            AnswerRecord("q2", -1, False),
        ],
    )


def lwt_result(applied: bool) -> Mock:
    result = Mock()
    result.was_applied = applied
    return result


def executed(mock_session) -> list[str]:
    return [call[0][0] for call in mock_session.aexecute.call_args_list]


class TestInsertAttempt:
    """Tests for insert_attempt."""

    @pytest.mark.asyncio
    async def test_structured_insert(self, mock_session, attempt: QuizAttempt) -> None:
        store = CassandraAttemptStore(mock_session, "coursetrack")

        await store.insert_attempt(attempt)

        assert mock_session.aexecute.call_count == 1
        statement, params = mock_session.aexecute.call_args[0]
        assert "answers)" in statement
        assert params[-1] == [("q1", 1, True), ("q2", -1, False)]
        assert params[3] == attempt.id

    @pytest.mark.asyncio
    async def test_serialized_insert(self, mock_session, attempt: QuizAttempt) -> None:
        store = CassandraAttemptStore(mock_session, "coursetrack")

        await store.insert_attempt(attempt, serialized=True)

        statement, params = mock_session.aexecute.call_args[0]
        assert "answers_raw" in statement
        assert json.loads(params[-1]) == [
            {"question_id": "q1", "selected_option": 1, "correct": True},
            {"question_id": "q2", "selected_option": -1, "correct": False},
        ]

    @pytest.mark.asyncio
    async def test_invalid_request_is_rejected(
        self, mock_session, attempt: QuizAttempt
    ) -> None:
        mock_session.aexecute.side_effect = InvalidRequest("bad tuple")
        store = CassandraAttemptStore(mock_session, "coursetrack")

        with pytest.raises(AttemptRejectedError):
            await store.insert_attempt(attempt)

    @pytest.mark.asyncio
    async def test_other_failure_is_store_error(
        self, mock_session, attempt: QuizAttempt
    ) -> None:
        mock_session.aexecute.side_effect = TimeoutError("write timeout")
        store = CassandraAttemptStore(mock_session, "coursetrack")

        with pytest.raises(AttemptStoreError):
            await store.insert_attempt(attempt)


class TestLegacyUniqueness:
    """Tests for the single-attempt claim."""

    @pytest.mark.asyncio
    async def test_claim_then_insert(self, mock_session, attempt: QuizAttempt) -> None:
        mock_session.aexecute.return_value = lwt_result(True)
        store = CassandraAttemptStore(mock_session, "coursetrack", legacy_unique=True)

        await store.insert_attempt(attempt)

        statements = executed(mock_session)
        assert len(statements) == 2
        assert "IF NOT EXISTS" in statements[0]
        assert "quiz_attempts" in statements[1]

    @pytest.mark.asyncio
    async def test_claim_taken_raises_duplicate(
        self, mock_session, attempt: QuizAttempt
    ) -> None:
        mock_session.aexecute.return_value = lwt_result(False)
        store = CassandraAttemptStore(mock_session, "coursetrack", legacy_unique=True)

        with pytest.raises(DuplicateAttemptError):
            await store.insert_attempt(attempt)
        assert mock_session.aexecute.call_count == 1

    @pytest.mark.asyncio
    async def test_failed_insert_releases_claim(
        self, mock_session, attempt: QuizAttempt
    ) -> None:
        mock_session.aexecute.side_effect = [
            lwt_result(True),
            InvalidRequest("bad tuple"),
            lwt_result(True),
        ]
        store = CassandraAttemptStore(mock_session, "coursetrack", legacy_unique=True)

        with pytest.raises(AttemptRejectedError):
            await store.insert_attempt(attempt)

        statement, params = mock_session.aexecute.call_args[0]
        assert "IF attempt_id = ?" in statement
        assert params == [attempt.user_id, attempt.quiz_id, attempt.id]

    @pytest.mark.asyncio
    async def test_delete_releases_claim(self, mock_session, attempt: QuizAttempt) -> None:
        store = CassandraAttemptStore(mock_session, "coursetrack", legacy_unique=True)

        await store.delete_attempt(attempt)

        statements = executed(mock_session)
        assert "DELETE FROM coursetrack.quiz_attempts" in statements[0]
        assert "DELETE FROM coursetrack.quiz_attempt_keys" in statements[1]


class TestFindSingle:
    """Tests for find_single."""

    @pytest.mark.asyncio
    async def test_no_claim(self, mock_session) -> None:
        result = Mock()
        result.one.return_value = None
        mock_session.aexecute.return_value = result
        store = CassandraAttemptStore(mock_session, "coursetrack", legacy_unique=True)

        assert await store.find_single(uuid4(), uuid4()) is None

    @pytest.mark.asyncio
    async def test_claim_without_row_returns_stub(self, mock_session) -> None:
        key = Mock()
        key.attempt_id = uuid4()
        key.created_at = None
        key_result, row_result = Mock(), Mock()
        key_result.one.return_value = key
        row_result.one.return_value = None
        mock_session.aexecute.side_effect = [key_result, row_result]
        store = CassandraAttemptStore(mock_session, "coursetrack", legacy_unique=True)

        found = await store.find_single(uuid4(), uuid4())

        assert found.id == key.attempt_id
        assert found.answers == []
