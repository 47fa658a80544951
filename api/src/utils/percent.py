"""Percentage helpers shared by progress aggregation and quiz scoring.

Percentages are whole numbers in 0-100 rounded half up, so 12.5 becomes 13
and 2.5 becomes 3 (Python's built-in round() would give 12 and 2).
"""

from decimal import ROUND_HALF_UP, Decimal


def round_half_up(value: Decimal | float | int) -> int:
    """Round a number to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(part: float | int, whole: float | int) -> int:
    """Return round(100 * part / whole), or 0 when whole is not positive."""
    if whole <= 0:
        return 0
    return round_half_up(Decimal(str(part)) * 100 / Decimal(str(whole)))


def clamp_percent(value: int) -> int:
    """Clamp a percentage into the 0-100 range."""
    return max(0, min(100, value))
