"""Shared fixtures: in-memory stores and an app wired to them."""

from collections.abc import Mapping
from datetime import datetime
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.assessments.errors import AttemptStoreError, DuplicateAttemptError
from src.assessments.models import Question, Quiz, QuizAttempt
from src.assessments.service import AssessmentService
from src.main import create_app
from src.progress.models import Enrollment
from src.progress.service import ProgressService


# ==============================================================================
# Fakes
# ==============================================================================


class FakeEnrollmentStore:
    """Enrollments kept in a dict keyed by (user_id, course_id)."""

    def __init__(self) -> None:
        self.enrollments: dict[tuple[UUID, UUID], Enrollment] = {}
        self.updates: list[tuple[UUID, UUID, int, dict[UUID, int]]] = []
        self.fail_updates = False

    def add(self, enrollment: Enrollment) -> Enrollment:
        self.enrollments[(enrollment.user_id, enrollment.course_id)] = enrollment
        return enrollment

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        stored = self.enrollments.get((user_id, course_id))
        if stored is None:
            return None
        # Hand out a copy, as a database read would
        return Enrollment(**stored.to_dict())

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        return [
            Enrollment(**e.to_dict())
            for (uid, _), e in self.enrollments.items()
            if uid == user_id
        ]

    async def update_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        overall_progress: int,
        lessons_progress: Mapping[UUID, int],
        updated_at: datetime,
    ) -> None:
        if self.fail_updates:
            raise ConnectionError("store unavailable")
        stored = self.enrollments[(user_id, course_id)]
        stored.overall_progress = overall_progress
        stored.lessons_progress = dict(lessons_progress)
        stored.updated_at = updated_at
        self.updates.append((user_id, course_id, overall_progress, dict(lessons_progress)))


class FakeLessonRoster:
    def __init__(self, counts: dict[UUID, int] | None = None) -> None:
        self.counts = counts or {}

    async def count_lessons(self, course_id: UUID) -> int:
        return self.counts.get(course_id, 0)


class FakeCourseCatalog:
    def __init__(self, titles: dict[UUID, str] | None = None) -> None:
        self.titles = titles or {}
        self.fail_reads = False

    async def get_course_title(self, course_id: UUID) -> str | None:
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return self.titles.get(course_id)


class FakeNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[UUID, UUID, UUID, int]] = []

    async def lesson_completed(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID, overall_progress: int
    ) -> None:
        self.calls.append((user_id, course_id, lesson_id, overall_progress))


class FakeAttemptStore:
    """Attempt history in a list.

    ``legacy_unique`` simulates a store still enforcing one row per
    (user, quiz); ``fail_next`` holds errors raised by the next inserts and
    ``fail_reads`` makes history reads fail.
    """

    def __init__(self, legacy_unique: bool = False) -> None:
        self.rows: list[QuizAttempt] = []
        self.serialized: set[UUID] = set()
        self.legacy_unique = legacy_unique
        self.fail_next: list[Exception] = []
        self.insert_calls: list[bool] = []
        self.deleted: list[UUID] = []
        self.fail_reads = False

    async def insert_attempt(self, attempt: QuizAttempt, serialized: bool = False) -> None:
        self.insert_calls.append(serialized)
        if self.fail_next:
            raise self.fail_next.pop(0)
        if self.legacy_unique and any(
            r.user_id == attempt.user_id and r.quiz_id == attempt.quiz_id
            for r in self.rows
        ):
            raise DuplicateAttemptError()
        self.rows.append(attempt)
        if serialized:
            self.serialized.add(attempt.id)

    async def find_single(self, user_id: UUID, quiz_id: UUID) -> QuizAttempt | None:
        return next(
            (r for r in self.rows if r.user_id == user_id and r.quiz_id == quiz_id),
            None,
        )

    async def delete_attempt(self, attempt: QuizAttempt) -> None:
        self.deleted.append(attempt.id)
        self.rows = [r for r in self.rows if r.id != attempt.id]

    async def list_attempts(
        self, user_id: UUID, quiz_id: UUID | None = None
    ) -> list[QuizAttempt]:
        if self.fail_reads:
            raise AttemptStoreError("store unavailable")
        return [
            r
            for r in self.rows
            if r.user_id == user_id and (quiz_id is None or r.quiz_id == quiz_id)
        ]


class FakeQuizCatalog:
    def __init__(self) -> None:
        self.quizzes: dict[UUID, Quiz] = {}

    def add(self, quiz: Quiz) -> Quiz:
        self.quizzes[quiz.id] = quiz
        return quiz

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self.quizzes.get(quiz_id)


# ==============================================================================
# Ids and entities
# ==============================================================================


@pytest.fixture
def user_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def course_id() -> UUID:
    """Test course ID."""
    return uuid4()


@pytest.fixture
def lesson_ids() -> list[UUID]:
    """Four lesson IDs."""
    return [uuid4() for _ in range(4)]


@pytest.fixture
def quiz(course_id: UUID) -> Quiz:
    """Five-question quiz; correct options [1, 3, 0, 2, 0]."""
    return Quiz(
        course_id=course_id,
        title="Basics Quiz",
        questions=[
            Question(text=f"Q{i + 1}", options=["a", "b", "c", "d"], correct_option=c)
            for i, c in enumerate([1, 3, 0, 2, 0])
        ],
    )


# ==============================================================================
# Stores and services
# ==============================================================================


@pytest.fixture
def enrollment_store() -> FakeEnrollmentStore:
    return FakeEnrollmentStore()


@pytest.fixture
def roster(course_id: UUID) -> FakeLessonRoster:
    return FakeLessonRoster({course_id: 4})


@pytest.fixture
def course_catalog(course_id: UUID) -> FakeCourseCatalog:
    return FakeCourseCatalog({course_id: "Data Structures"})


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def attempt_store() -> FakeAttemptStore:
    return FakeAttemptStore()


@pytest.fixture
def quiz_catalog(quiz: Quiz) -> FakeQuizCatalog:
    catalog = FakeQuizCatalog()
    catalog.add(quiz)
    return catalog


@pytest.fixture
def enrollment(
    enrollment_store: FakeEnrollmentStore, user_id: UUID, course_id: UUID
) -> Enrollment:
    """Learner enrolled in the test course, no progress yet."""
    return enrollment_store.add(Enrollment(user_id=user_id, course_id=course_id))


@pytest.fixture
def progress_service(
    enrollment_store: FakeEnrollmentStore,
    roster: FakeLessonRoster,
    notifier: FakeNotifier,
    course_catalog: FakeCourseCatalog,
) -> ProgressService:
    """ProgressService over in-memory stores, notifications without delay."""
    return ProgressService(
        store=enrollment_store,
        roster=roster,
        notifier=notifier,
        courses=course_catalog,
        notification_delay=0,
    )


@pytest.fixture
def assessment_service(
    attempt_store: FakeAttemptStore,
    quiz_catalog: FakeQuizCatalog,
    enrollment_store: FakeEnrollmentStore,
) -> AssessmentService:
    return AssessmentService(
        attempts=attempt_store,
        quizzes=quiz_catalog,
        enrollments=enrollment_store,
    )


# ==============================================================================
# HTTP
# ==============================================================================


@pytest.fixture
def app(
    progress_service: ProgressService, assessment_service: AssessmentService
) -> FastAPI:
    """Application wired to the in-memory services (lifespan not run)."""
    application = create_app()
    application.state.progress_service = progress_service
    application.state.assessment_service = assessment_service
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client without lifespan, so no database connection is attempted."""
    return TestClient(app)


@pytest.fixture
def auth_headers(user_id: UUID) -> dict[str, str]:
    """Identity header set by the auth gateway."""
    return {"X-User-ID": str(user_id)}
