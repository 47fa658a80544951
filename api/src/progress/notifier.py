"""Learner-facing notifications published by the progress engine."""

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from src.core.redis import notification_channel


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = structlog.get_logger(__name__)


class CompletionNotifier(Protocol):
    """Receives the one-shot "lesson completed" signal."""

    async def lesson_completed(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        overall_progress: int,
    ) -> None:
        """Tell the learner a lesson has been completed."""
        ...


class RedisCompletionNotifier:
    """Publishes lesson completion to the learner's Redis notification channel."""

    def __init__(self, redis: "Redis | None" = None):
        self.redis = redis

    async def lesson_completed(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        overall_progress: int,
    ) -> None:
        """Publish a lesson_completed message; failures are logged, never raised."""
        if not self.redis:
            logger.debug("completion_notification_skipped", reason="redis_unavailable")
            return

        message = {
            "type": "lesson_completed",
            "data": {
                "id": f"lesson-complete-{lesson_id}",
                "course_id": str(course_id),
                "lesson_id": str(lesson_id),
                "overall_progress": overall_progress,
                "message": "Lesson completed! Your progress has been updated.",
                "created_at": datetime.now(UTC).isoformat(),
            },
        }

        try:
            await self.redis.publish(
                notification_channel(str(user_id)), json.dumps(message)
            )
        except Exception as e:
            logger.warning(
                "completion_notification_failed",
                lesson_id=str(lesson_id),
                error=str(e),
            )
