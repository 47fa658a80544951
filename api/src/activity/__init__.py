"""Recent activity module.

Feed reconstructed from enrollments and quiz attempts.
"""

from .models import ActivityEvent, ActivityType
from .service import derive_activity, format_relative_time


__all__ = ["ActivityEvent", "ActivityType", "derive_activity", "format_relative_time"]
