"""Learner progress tracking module.

Provides:
- Playback monitoring with checkpoint emission
- Lesson progress aggregation into course progress (single-flight per session)
- Lesson completion notifications
- Progress and enrollment queries
"""

from .models import (
    CHECKPOINTS,
    PROGRESS_TABLES_CQL,
    Enrollment,
    PlaybackState,
)
from .playback import PlaybackMonitor, RemotePlaybackAdapter
from .service import LearnerSession, NotEnrolledError, ProgressError, ProgressService


__all__ = [
    "CHECKPOINTS",
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "LearnerSession",
    "NotEnrolledError",
    "PlaybackMonitor",
    "PlaybackState",
    "ProgressError",
    "ProgressService",
    "RemotePlaybackAdapter",
]
