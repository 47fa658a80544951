"""Achievement evaluation module.

Badges derived from enrollments and quiz attempts on every read.
"""

from .models import Achievement
from .service import evaluate


__all__ = ["Achievement", "evaluate"]
