"""Tests for timestamp helpers."""

from datetime import UTC, datetime, timedelta, timezone

from src.utils import ensure_utc_aware


class TestEnsureUtcAware:
    def test_naive_is_marked_utc(self) -> None:
        naive = datetime(2024, 6, 15, 12, 0)

        assert ensure_utc_aware(naive) == datetime(2024, 6, 15, 12, 0, tzinfo=UTC)

    def test_aware_is_unchanged(self) -> None:
        moment = datetime(2024, 6, 15, 12, 0, tzinfo=timezone(timedelta(hours=2)))

        assert ensure_utc_aware(moment) is moment

    def test_none(self) -> None:
        assert ensure_utc_aware(None) is None
