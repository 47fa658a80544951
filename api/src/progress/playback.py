"""Playback monitoring.

Turns a continuously moving media position into a handful of discrete
progress events per lesson:

- While the player is PLAYING, a polling task samples the position every
  ``poll_interval`` seconds and emits the highest checkpoint (25/50/75/90/100)
  reached above the last persisted percent.
- On ENDED, a forced 100 is emitted regardless of the high-water mark.
- The high-water mark only moves when the sink reports the write persisted;
  a failed or dropped write is attempted again on the next tick.
- The monitor is an explicit handle: ``release()`` (or leaving its
  ``with`` / ``async with`` block) cancels the polling task and any pending
  emits, and nothing is delivered after that.

Adapter failures are logged and skipped; they never propagate to the host.
"""

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any, Protocol
from uuid import UUID

import structlog

from src.utils import clamp_percent, percent_of

from .models import CHECKPOINTS, PlaybackState


logger = structlog.get_logger(__name__)

# Returns True when the percent was persisted
ProgressSink = Callable[[UUID, int], Awaitable[bool]]
StateListener = Callable[[PlaybackState], None]


class PlaybackUnavailableError(Exception):
    """Raised by an adapter whose player is gone."""


class PlaybackAdapter(Protocol):
    """Capability exposed by a media player."""

    def current_position(self) -> float:
        """Current position in seconds."""
        ...

    def duration(self) -> float:
        """Media duration in seconds."""
        ...

    def state(self) -> PlaybackState:
        """Current playback state."""
        ...

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a state-change listener; returns an unsubscribe callable."""
        ...


def next_checkpoint(
    percent: int,
    high_water: int,
    checkpoints: tuple[int, ...] = CHECKPOINTS,
) -> int | None:
    """Highest checkpoint reached by ``percent`` that lies above ``high_water``."""
    passed = [cp for cp in checkpoints if high_water < cp <= percent]
    return max(passed) if passed else None


class RemotePlaybackAdapter:
    """Adapter for a player running on the client.

    The client pushes state, position and duration (over the playback
    WebSocket); the monitor polls the last reported values.
    """

    def __init__(self) -> None:
        self._state = PlaybackState.UNSTARTED
        self._position = 0.0
        self._duration = 0.0
        self._listeners: list[StateListener] = []
        self._closed = False

    def current_position(self) -> float:
        self._check_open()
        return self._position

    def duration(self) -> float:
        self._check_open()
        return self._duration

    def state(self) -> PlaybackState:
        self._check_open()
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(
        self,
        state: PlaybackState | None = None,
        position: float | None = None,
        duration: float | None = None,
    ) -> None:
        """Record a client report and notify listeners when the state changed."""
        if self._closed:
            return
        if position is not None:
            self._position = max(0.0, position)
        if duration is not None:
            self._duration = duration
        if state is not None and state != self._state:
            self._state = state
            for listener in list(self._listeners):
                try:
                    listener(state)
                except Exception:
                    logger.exception("playback_listener_failed", state=state.value)

    def close(self) -> None:
        """Mark the player as gone; later reads raise PlaybackUnavailableError."""
        self._closed = True
        self._listeners.clear()

    def _check_open(self) -> None:
        if self._closed:
            raise PlaybackUnavailableError("Player is no longer available")


class PlaybackMonitor:
    """Checkpoint tracker for one lesson in one learner session.

    Args:
        lesson_id: Lesson being watched
        adapter: Player capability
        on_progress: Awaitable sink receiving (lesson_id, percent)
        stored_percent: Last persisted percent for the lesson (high-water mark)
        poll_interval: Seconds between position samples
        checkpoints: Percentages at which progress is emitted
    """

    def __init__(
        self,
        lesson_id: UUID,
        adapter: PlaybackAdapter,
        on_progress: ProgressSink,
        stored_percent: int = 0,
        poll_interval: float = 5.0,
        checkpoints: tuple[int, ...] = CHECKPOINTS,
    ):
        self.lesson_id = lesson_id
        self.adapter = adapter
        self.on_progress = on_progress
        self.poll_interval = poll_interval
        self.checkpoints = tuple(sorted(checkpoints))
        self._high_water = clamp_percent(stored_percent)
        # Highest percent persisted or being written
        self._claimed = self._high_water
        self._poll_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()
        self._writes: dict[asyncio.Future, int] = {}
        self._unsubscribe: Callable[[], None] | None = None
        self._started = False
        self._released = False

    # ==========================================================================
    # Handle lifecycle
    # ==========================================================================

    @property
    def high_water(self) -> int:
        """Highest percent persisted (before or during the session)."""
        return self._high_water

    @property
    def released(self) -> bool:
        return self._released

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def start(self) -> "PlaybackMonitor":
        """Subscribe to the adapter; starts polling if already playing."""
        if self._released:
            raise RuntimeError("PlaybackMonitor was released")
        if self._started:
            return self
        self._started = True

        try:
            self._unsubscribe = self.adapter.subscribe(self._on_state_change)
        except Exception as e:
            logger.warning(
                "playback_subscribe_failed", lesson_id=str(self.lesson_id), error=str(e)
            )
            return self

        if self._read_state() is PlaybackState.PLAYING:
            self._start_polling()
        return self

    def release(self) -> None:
        """Cancel polling and pending emits. Safe to call more than once."""
        if self._released:
            return
        self._released = True

        if self._unsubscribe is not None:
            try:
                self._unsubscribe()
            except Exception as e:
                logger.warning("playback_unsubscribe_failed", error=str(e))
            self._unsubscribe = None

        if self._poll_task is not None:
            self._poll_task.cancel()
        for task in list(self._pending):
            task.cancel()

        logger.debug(
            "playback_monitor_released",
            lesson_id=str(self.lesson_id),
            high_water=self._high_water,
        )

    async def aclose(self) -> None:
        """Release and wait for cancelled tasks and in-flight writes to settle."""
        self.release()
        tasks: list[asyncio.Future] = [*self._pending, *self._writes]
        if self._poll_task is not None:
            tasks.append(self._poll_task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def __enter__(self) -> "PlaybackMonitor":
        return self.start()

    def __exit__(self, *_: object) -> None:
        self.release()

    async def __aenter__(self) -> "PlaybackMonitor":
        return self.start()

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    # ==========================================================================
    # State handling
    # ==========================================================================

    def _on_state_change(self, state: PlaybackState) -> None:
        if self._released:
            return
        if state is PlaybackState.PLAYING:
            self._start_polling()
        elif state is PlaybackState.ENDED:
            self._spawn(self._emit(100, forced=True))

    def _start_polling(self) -> None:
        # At most one loop per lesson
        if self.is_polling:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("playback_no_event_loop", lesson_id=str(self.lesson_id))
            return
        self._poll_task = loop.create_task(
            self._poll_loop(), name=f"playback_poll_{self.lesson_id}"
        )

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("playback_no_event_loop", lesson_id=str(self.lesson_id))
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _poll_loop(self) -> None:
        while not self._released:
            await asyncio.sleep(self.poll_interval)
            if self._released:
                return
            if self._read_state() is not PlaybackState.PLAYING:
                logger.debug("playback_polling_stopped", lesson_id=str(self.lesson_id))
                return
            await self.poll_once()

    async def poll_once(self) -> int | None:
        """Sample the position once; return the checkpoint if one was persisted."""
        percent = self._read_percent()
        if percent is None:
            return None

        checkpoint = next_checkpoint(percent, self._claimed, self.checkpoints)
        if checkpoint is None:
            return None

        persisted = await self._emit(checkpoint)
        return checkpoint if persisted else None

    # ==========================================================================
    # Adapter access (never raises)
    # ==========================================================================

    def _read_state(self) -> PlaybackState | None:
        try:
            return self.adapter.state()
        except Exception as e:
            logger.warning(
                "playback_adapter_error",
                lesson_id=str(self.lesson_id),
                operation="state",
                error=str(e),
            )
            return None

    def _read_percent(self) -> int | None:
        try:
            duration = self.adapter.duration()
            position = self.adapter.current_position()
        except Exception as e:
            logger.warning(
                "playback_adapter_error",
                lesson_id=str(self.lesson_id),
                operation="position",
                error=str(e),
            )
            return None

        if duration is None or duration <= 0:
            return None
        return clamp_percent(percent_of(position, duration))

    # ==========================================================================
    # Emission
    # ==========================================================================

    async def _emit(self, percent: int, forced: bool = False) -> bool:
        """Hand a percent to the sink; True when it was persisted."""
        if self._released:
            return False

        if forced and self._writes:
            # Let the previous checkpoint land so the sink does not drop 100
            await asyncio.gather(
                *(asyncio.shield(w) for w in list(self._writes)),
                return_exceptions=True,
            )
            if self._released:
                return False

        # Claim before awaiting so a concurrent tick cannot re-emit
        self._claimed = max(self._claimed, percent)

        logger.debug(
            "playback_checkpoint_reached",
            lesson_id=str(self.lesson_id),
            percent=percent,
            forced=forced,
        )

        # A started write is not cancelled with the monitor
        write = asyncio.ensure_future(self.on_progress(self.lesson_id, percent))
        self._writes[write] = percent
        write.add_done_callback(self._write_done)
        try:
            return bool(await asyncio.shield(write))
        except asyncio.CancelledError:
            raise
        except Exception:
            return False  # already logged by _write_done

    def _write_done(self, write: asyncio.Future) -> None:
        percent = self._writes.pop(write, 0)
        persisted = False
        if not write.cancelled():
            error = write.exception()
            if error is not None:
                logger.warning(
                    "playback_progress_sink_failed",
                    lesson_id=str(self.lesson_id),
                    percent=percent,
                    error=str(error),
                    error_type=type(error).__name__,
                )
            else:
                persisted = bool(write.result())

        if persisted:
            self._high_water = max(self._high_water, percent)
        else:
            logger.debug(
                "playback_checkpoint_not_persisted",
                lesson_id=str(self.lesson_id),
                percent=percent,
            )
        # Release the claim on anything that did not land
        self._claimed = max(self._high_water, *self._writes.values(), 0)
