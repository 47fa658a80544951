"""WebSocket API for playback tracking.

Provides:
- WS /ws/progress/{course_id}/{lesson_id} - Player reports for one open lesson

The connection is the lesson's viewing session: the client pushes player
state, position and duration; a PlaybackMonitor turns them into checkpoint
writes. Closing the socket releases the monitor and cancels pending timers.
"""

from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from src.config.settings import get_settings
from src.core.context import LearnerContext
from src.core.identity import parse_learner_id
from src.core.logging import get_logger

from .playback import PlaybackMonitor, RemotePlaybackAdapter
from .schemas import PlaybackMessage
from .service import LearnerSession, NotEnrolledError, ProgressService


logger = get_logger(__name__)

router = APIRouter(tags=["progress-ws"])


def build_progress_sink(
    websocket: WebSocket,
    progress_service: ProgressService,
    session: LearnerSession,
    course_id: UUID,
):
    """Sink that records a checkpoint and acknowledges it to the client."""

    async def on_progress(lesson_id: UUID, percent: int) -> bool:
        enrollment = await progress_service.record_lesson_progress(
            session.user_id, course_id, lesson_id, percent, session=session
        )
        if enrollment is None:
            return False
        await websocket.send_json(
            {
                "type": "progress_recorded",
                "lesson_id": str(lesson_id),
                "percent": percent,
                "overall_progress": enrollment.overall_progress,
            }
        )
        return True

    return on_progress


@router.websocket("/ws/progress/{course_id}/{lesson_id}")
async def playback_websocket(
    websocket: WebSocket,
    course_id: UUID,
    lesson_id: UUID,
    user_id: str = Query(..., description="Learner UUID"),
) -> None:
    """WebSocket endpoint for lesson playback tracking.

    Connect with: ws://host/ws/progress/<course_id>/<lesson_id>?user_id=<uuid>

    Messages you can send:
    - {"state": "playing", "position": 12.5, "duration": 300} - Player report
      (every field optional)
    - {"type": "ping"} - Keep-alive

    Messages received:
    - {"type": "connected", "stored_percent": N} - Session opened
    - {"type": "progress_recorded", "percent": N, "overall_progress": M}
    - {"type": "error", "message": "..."} - Malformed report
    """
    learner_id = parse_learner_id(user_id)
    if learner_id is None:
        await websocket.close(code=4001, reason="Invalid learner identity")
        return

    progress_service: ProgressService | None = getattr(
        websocket.app.state, "progress_service", None
    )
    if progress_service is None:
        await websocket.close(code=1011, reason="Progress service not available")
        return

    try:
        enrollment = await progress_service.get_enrollment(learner_id, course_id)
    except NotEnrolledError:
        await websocket.close(code=4004, reason="Not enrolled")
        return

    settings = get_settings()
    session = LearnerSession(learner_id)
    adapter = RemotePlaybackAdapter()
    stored_percent = enrollment.lesson_percent(lesson_id)
    monitor = PlaybackMonitor(
        lesson_id,
        adapter,
        build_progress_sink(websocket, progress_service, session, course_id),
        stored_percent=stored_percent,
        poll_interval=settings.progress_poll_interval_seconds,
    )

    await websocket.accept()

    with LearnerContext(
        user_id=str(learner_id), course_id=str(course_id), lesson_id=str(lesson_id)
    ):
        logger.info("playback_session_opened", stored_percent=stored_percent)
        try:
            await websocket.send_json(
                {
                    "type": "connected",
                    "lesson_id": str(lesson_id),
                    "stored_percent": stored_percent,
                }
            )
            monitor.start()

            while True:
                message = await websocket.receive_json()
                if message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
                    continue

                try:
                    report = PlaybackMessage.model_validate(message)
                except ValidationError as e:
                    await websocket.send_json(
                        {"type": "error", "message": "Invalid playback report"}
                    )
                    logger.debug("playback_report_invalid", errors=e.error_count())
                    continue

                adapter.update(
                    state=report.state,
                    position=report.position,
                    duration=report.duration,
                )

        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.warning("playback_websocket_error", error=str(e))
        finally:
            await monitor.aclose()
            adapter.close()
            session.close()
            logger.info("playback_session_closed", high_water=monitor.high_water)
