"""Utility modules for the course tracking API."""

from src.utils.percent import clamp_percent, percent_of, round_half_up
from src.utils.timestamps import ensure_utc_aware


__all__ = ["clamp_percent", "ensure_utc_aware", "percent_of", "round_half_up"]
