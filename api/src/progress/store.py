"""Persistence for enrollments, the course lesson roster and course titles.

The aggregator only depends on the EnrollmentStore, LessonRoster and
CourseCatalog protocols; the Cassandra classes are the production
implementations.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from .models import Enrollment


if TYPE_CHECKING:
    from cassandra.cluster import Session


class EnrollmentStore(Protocol):
    """Point lookup and atomic progress update for enrollments."""

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get the enrollment for (user, course), None when not enrolled."""
        ...

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get every enrollment of a learner."""
        ...

    async def update_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        overall_progress: int,
        lessons_progress: Mapping[UUID, int],
        updated_at: datetime,
    ) -> None:
        """Persist overall progress, the lesson map and updated_at in one write."""
        ...


class LessonRoster(Protocol):
    """Lesson roster of a course."""

    async def count_lessons(self, course_id: UUID) -> int:
        """Total number of lessons in the course."""
        ...


class CourseCatalog(Protocol):
    """Course title lookup."""

    async def get_course_title(self, course_id: UUID) -> str | None:
        """Get the course title, None when the course is unknown."""
        ...


class CassandraEnrollmentStore:
    """Enrollment store backed by the enrollments table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ? AND course_id = ?
        """)

        self._get_user_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE user_id = ?
        """)

        # Single-row UPDATE: both fields land together or not at all
        self._update_progress = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET overall_progress = ?, lessons_progress = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ?
        """)

    async def get_enrollment(self, user_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by user and course."""
        result = await self.session.aexecute(self._get_enrollment, [user_id, course_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def list_enrollments(self, user_id: UUID) -> list[Enrollment]:
        """Get all enrollments for a user."""
        rows = await self.session.aexecute(self._get_user_enrollments, [user_id])
        return [Enrollment.from_row(row) for row in rows]

    async def update_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        overall_progress: int,
        lessons_progress: Mapping[UUID, int],
        updated_at: datetime,
    ) -> None:
        """Write overall progress and the lesson map in one statement."""
        await self.session.aexecute(
            self._update_progress,
            [
                overall_progress,
                dict(lessons_progress),
                updated_at,
                user_id,
                course_id,
            ],
        )


class CassandraLessonRoster:
    """Lesson roster backed by the course_lessons table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._count_lessons = self.session.prepare(f"""
            SELECT COUNT(*) FROM {self.keyspace}.course_lessons
            WHERE course_id = ?
        """)

    async def count_lessons(self, course_id: UUID) -> int:
        """Count lessons registered for a course."""
        result = await self.session.aexecute(self._count_lessons, [course_id])
        row = result.one()
        return int(row[0]) if row else 0


class CassandraCourseCatalog:
    """Course catalog backed by the courses table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._get_course_title = self.session.prepare(f"""
            SELECT title FROM {self.keyspace}.courses
            WHERE course_id = ?
        """)

    async def get_course_title(self, course_id: UUID) -> str | None:
        """Get course title by ID."""
        result = await self.session.aexecute(self._get_course_title, [course_id])
        row = result.one()
        return row.title if row else None
