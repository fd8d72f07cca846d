"""Tests for the retention cutoff."""

from datetime import datetime, timedelta, timezone

import pytest

from archiver.services.retention import compute_cutoff


def _ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class TestComputeCutoff:
    """Cutoff is 23:50:00 on the previous calendar day."""

    @pytest.mark.unit
    def test_previous_day_at_2350_local(self):
        now = datetime(2024, 3, 15, 10, 30, 0)
        assert compute_cutoff(now) == _ms(datetime(2024, 3, 14, 23, 50, 0))

    @pytest.mark.unit
    def test_same_calendar_day_gives_same_cutoff(self):
        early = datetime(2024, 3, 15, 0, 0, 1)
        late = datetime(2024, 3, 15, 23, 59, 59)
        assert compute_cutoff(early) == compute_cutoff(late)

    @pytest.mark.unit
    def test_at_trigger_time_keeps_last_24_hours(self):
        """At the 23:50 trigger, the cutoff is exactly one day back."""
        now = datetime(2024, 6, 10, 23, 50, 0, tzinfo=timezone.utc)
        assert compute_cutoff(now) == _ms(now - timedelta(days=1))

    @pytest.mark.unit
    def test_crosses_year_boundary(self):
        now = datetime(2025, 1, 1, 8, 0, 0)
        assert compute_cutoff(now) == _ms(datetime(2024, 12, 31, 23, 50, 0))

    @pytest.mark.unit
    def test_aware_datetime_keeps_timezone(self):
        tz = timezone(timedelta(hours=5))
        now = datetime(2024, 3, 15, 1, 0, 0, tzinfo=tz)
        assert compute_cutoff(now) == _ms(datetime(2024, 3, 14, 23, 50, 0, tzinfo=tz))

    @pytest.mark.unit
    def test_increases_day_over_day(self):
        day1 = datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc)
        day2 = day1 + timedelta(days=1)
        assert compute_cutoff(day2) - compute_cutoff(day1) == 24 * 60 * 60 * 1000

    @pytest.mark.unit
    def test_default_uses_wall_clock(self):
        cutoff = compute_cutoff()
        now_ms = _ms(datetime.now())
        assert now_ms - 2 * 24 * 60 * 60 * 1000 < cutoff < now_ms
