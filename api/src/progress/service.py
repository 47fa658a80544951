"""Learner progress service layer.

Business logic for:
- Learner sessions (single-flight write token, completed-lesson set,
  notification timers)
- Lesson progress aggregation into course progress
- Progress read accessors
"""

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from uuid import UUID

import structlog

from src.utils import clamp_percent

from .models import (
    COMPLETION_THRESHOLD,
    Enrollment,
    compute_overall_progress,
    count_completed_lessons,
)
from .notifier import CompletionNotifier
from .schemas import CourseProgressResponse, LessonProgressSummary
from .store import CourseCatalog, EnrollmentStore, LessonRoster


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    """User not enrolled in course."""

    def __init__(self, message: str = "Learner is not enrolled in this course"):
        super().__init__(message, "not_enrolled")


# ==============================================================================
# Learner Session
# ==============================================================================


class LearnerSession:
    """Per-learner scope for progress writes.

    Holds the single-flight write token, the set of lessons already
    announced as completed, and one pending notification timer per lesson.
    """

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        self.completed_lessons: set[UUID] = set()
        self.last_active = time.monotonic()
        self._write_token = asyncio.Lock()
        self._notification_timers: dict[UUID, asyncio.Task] = {}
        self._closed = False

    @property
    def busy(self) -> bool:
        """A progress write is in flight."""
        return self._write_token.locked()

    @property
    def closed(self) -> bool:
        return self._closed

    @asynccontextmanager
    async def write_slot(self) -> AsyncIterator[bool]:
        """Try to take the write token without waiting.

        Yields True while holding the token, False when another write is in
        flight or the session is closed.
        """
        self.last_active = time.monotonic()
        if self._closed or self._write_token.locked():
            yield False
            return
        async with self._write_token:
            try:
                yield True
            finally:
                self.last_active = time.monotonic()

    def schedule_notification(
        self,
        lesson_id: UUID,
        delay: float,
        notify: Callable[[], Awaitable[None]],
    ) -> None:
        """Run ``notify`` after ``delay`` seconds.

        A pending timer for the same lesson is replaced; timers of other
        lessons are left alone. The lesson joins ``completed_lessons`` when
        its timer fires.
        """
        if self._closed or lesson_id in self.completed_lessons:
            return
        pending = self._notification_timers.get(lesson_id)
        if pending is not None and not pending.done():
            pending.cancel()
        self._notification_timers[lesson_id] = asyncio.get_running_loop().create_task(
            self._fire_later(lesson_id, delay, notify)
        )

    async def _fire_later(
        self,
        lesson_id: UUID,
        delay: float,
        notify: Callable[[], Awaitable[None]],
    ) -> None:
        await asyncio.sleep(delay)
        if self._closed:
            return
        self._notification_timers.pop(lesson_id, None)
        self.completed_lessons.add(lesson_id)
        try:
            await notify()
        except Exception as e:
            logger.warning(
                "completion_notification_failed",
                user_id=str(self.user_id),
                lesson_id=str(lesson_id),
                error=str(e),
            )

    @property
    def has_pending_notification(self) -> bool:
        return any(not t.done() for t in self._notification_timers.values())

    def is_idle(self, idle_seconds: float, now: float | None = None) -> bool:
        """No write in flight, no timer pending and untouched for ``idle_seconds``."""
        now = time.monotonic() if now is None else now
        return (
            not self.busy
            and not self.has_pending_notification
            and now - self.last_active >= idle_seconds
        )

    def close(self) -> None:
        """Cancel pending timers; later writes are dropped."""
        if self._closed:
            return
        self._closed = True
        for timer in self._notification_timers.values():
            timer.cancel()
        self._notification_timers.clear()
        logger.debug("learner_session_closed", user_id=str(self.user_id))


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Aggregates lesson progress into enrollments and serves progress reads."""

    def __init__(
        self,
        store: EnrollmentStore,
        roster: LessonRoster,
        notifier: CompletionNotifier,
        courses: CourseCatalog | None = None,
        completion_threshold: int = COMPLETION_THRESHOLD,
        notification_delay: float = 0.3,
        session_idle_seconds: float = 1800.0,
    ):
        self.store = store
        self.roster = roster
        self.notifier = notifier
        self.courses = courses
        self.completion_threshold = completion_threshold
        self.notification_delay = notification_delay
        self.session_idle_seconds = session_idle_seconds
        self._sessions: dict[UUID, LearnerSession] = {}
        self._last_sweep = time.monotonic()

    # ==========================================================================
    # Sessions
    # ==========================================================================

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    def session_for(self, user_id: UUID) -> LearnerSession:
        """Get the learner's shared session, opening one if needed."""
        self._evict_idle_sessions(keep=user_id)
        session = self._sessions.get(user_id)
        if session is None or session.closed:
            session = LearnerSession(user_id)
            self._sessions[user_id] = session
        return session

    def close_session(self, user_id: UUID) -> None:
        """Close the learner's shared session and forget it."""
        session = self._sessions.pop(user_id, None)
        if session is not None:
            session.close()

    def _evict_idle_sessions(self, keep: UUID) -> None:
        """Close shared sessions idle for ``session_idle_seconds``, except ``keep``.

        Runs at most once per idle window.
        """
        now = time.monotonic()
        if now - self._last_sweep < self.session_idle_seconds:
            return
        self._last_sweep = now

        idle = [
            user_id
            for user_id, session in self._sessions.items()
            if user_id != keep
            and (session.closed or session.is_idle(self.session_idle_seconds, now))
        ]
        for user_id in idle:
            self.close_session(user_id)
        if idle:
            logger.debug(
                "learner_sessions_evicted", count=len(idle), open=len(self._sessions)
            )

    def close_all_sessions(self) -> None:
        """Close every open session (application shutdown)."""
        for user_id in list(self._sessions):
            self.close_session(user_id)

    # ==========================================================================
    # Aggregation
    # ==========================================================================

    async def record_lesson_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        percent: int,
        session: LearnerSession | None = None,
    ) -> Enrollment | None:
        """Merge a lesson percent into the enrollment and recompute course progress.

        At most one write per session is in flight; a call arriving while
        another is running is dropped and returns None. Store failures are
        logged and also return None: the next checkpoint retries naturally.

        Args:
            user_id: Learner UUID
            course_id: Course UUID
            lesson_id: Lesson UUID
            percent: Lesson percent watched (clamped to 0-100)
            session: Session scope; defaults to the learner's shared session

        Returns:
            Updated Enrollment, or None when dropped or not persisted

        Raises:
            NotEnrolledError: If the learner has no enrollment for the course
        """
        percent = clamp_percent(percent)
        session = session or self.session_for(user_id)

        async with session.write_slot() as acquired:
            if not acquired:
                logger.debug(
                    "lesson_progress_dropped",
                    user_id=str(user_id),
                    lesson_id=str(lesson_id),
                    percent=percent,
                    reason="session_closed" if session.closed else "write_in_flight",
                )
                return None

            try:
                enrollment = await self._merge_and_persist(
                    user_id, course_id, lesson_id, percent
                )
            except ProgressError:
                raise
            except Exception as e:
                logger.warning(
                    "lesson_progress_write_failed",
                    user_id=str(user_id),
                    course_id=str(course_id),
                    lesson_id=str(lesson_id),
                    percent=percent,
                    error=str(e),
                )
                return None

        if (
            percent >= self.completion_threshold
            and lesson_id not in session.completed_lessons
        ):
            overall = enrollment.overall_progress
            session.schedule_notification(
                lesson_id,
                self.notification_delay,
                lambda: self.notifier.lesson_completed(
                    user_id, course_id, lesson_id, overall
                ),
            )

        return enrollment

    async def _merge_and_persist(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        percent: int,
    ) -> Enrollment:
        enrollment = await self.store.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError()

        # Last write wins
        lessons_progress = dict(enrollment.lessons_progress)
        lessons_progress[lesson_id] = percent

        total_lessons = await self.roster.count_lessons(course_id)
        overall = compute_overall_progress(
            lessons_progress, total_lessons, self.completion_threshold
        )
        now = datetime.now(UTC)

        await self.store.update_progress(
            user_id, course_id, overall, lessons_progress, now
        )

        enrollment.lessons_progress = lessons_progress
        enrollment.overall_progress = overall
        enrollment.updated_at = now

        logger.info(
            "lesson_progress_recorded",
            user_id=str(user_id),
            course_id=str(course_id),
            lesson_id=str(lesson_id),
            percent=percent,
            overall_progress=overall,
            total_lessons=total_lessons,
        )
        return enrollment

    # ==========================================================================
    # Read accessors
    # ==========================================================================

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment:
        """Get enrollment or raise NotEnrolledError."""
        enrollment = await self.store.get_enrollment(user_id, course_id)
        if enrollment is None:
            raise NotEnrolledError()
        return enrollment

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a learner."""
        return await self.store.list_enrollments(user_id)

    async def course_titles(self, course_ids: Iterable[UUID]) -> dict[UUID, str]:
        """Look up course titles; unknown or unreadable courses are left out."""
        if self.courses is None:
            return {}

        titles: dict[UUID, str] = {}
        for course_id in set(course_ids):
            try:
                title = await self.courses.get_course_title(course_id)
            except Exception as e:
                logger.warning(
                    "course_title_lookup_failed", course_id=str(course_id), error=str(e)
                )
                continue
            if title:
                titles[course_id] = title
        return titles

    async def get_lesson_progress(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> int:
        """Get the stored percent for a lesson (0 when never watched)."""
        enrollment = await self.get_enrollment(user_id, course_id)
        return enrollment.lesson_percent(lesson_id)

    async def get_course_progress(
        self, user_id: UUID, course_id: UUID
    ) -> CourseProgressResponse:
        """Get overall and per-lesson progress for a course."""
        enrollment = await self.get_enrollment(user_id, course_id)
        total_lessons = await self.roster.count_lessons(course_id)

        lessons = [
            LessonProgressSummary(
                lesson_id=lesson_id,
                progress_percent=percent,
                completed=percent >= self.completion_threshold,
            )
            for lesson_id, percent in enrollment.lessons_progress.items()
        ]

        return CourseProgressResponse(
            course_id=course_id,
            overall_progress=enrollment.overall_progress,
            lessons_completed=count_completed_lessons(
                enrollment.lessons_progress, self.completion_threshold
            ),
            lessons_total=total_lessons,
            lessons=lessons,
            updated_at=enrollment.updated_at,
        )
