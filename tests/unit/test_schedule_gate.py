"""
Unit tests for the allowed operating hours
"""

from datetime import datetime, timedelta, timezone

import pytest

from ingestion.schedule_gate import ScheduleGate


@pytest.fixture
def gate():
    return ScheduleGate(start_hour=7, end_hour=22, timezone_name="America/Denver")


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestScheduleGate:
    """Test window membership and waits in the configured timezone"""

    def test_start_hour_is_inside(self, gate):
        # 13:00 UTC is 07:00 in Denver during daylight time
        assert gate.is_within_allowed_window(utc(2024, 10, 19, 13, 0))

    def test_just_before_start_is_outside(self, gate):
        assert not gate.is_within_allowed_window(utc(2024, 10, 19, 12, 59))

    def test_end_hour_is_outside(self, gate):
        # 04:00 UTC is 22:00 the previous evening in Denver
        assert not gate.is_within_allowed_window(utc(2024, 10, 20, 4, 0))
        assert gate.is_within_allowed_window(utc(2024, 10, 20, 3, 59))

    def test_wait_until_start_today(self, gate):
        """Test early mornings wait for today's start"""
        assert gate.time_until_next_allowed_start(utc(2024, 10, 19, 12, 59)) == timedelta(minutes=1)

    def test_wait_until_start_tomorrow(self, gate):
        """Test evenings wait for tomorrow's start"""
        assert gate.time_until_next_allowed_start(utc(2024, 10, 20, 4, 0)) == timedelta(hours=9)

    def test_wait_across_dst_change(self, gate):
        """Test the wait is real elapsed time when clocks fall back overnight"""
        # 23:00 MDT on Nov 2; the next 07:00 is MST, one wall-clock hour later in UTC
        assert gate.time_until_next_allowed_start(utc(2024, 11, 3, 5, 0)) == timedelta(hours=9)

    def test_naive_datetimes_are_utc(self, gate):
        assert gate.is_within_allowed_window(datetime(2024, 10, 19, 13, 0))

    def test_next_start_is_local_start_hour(self, gate):
        start = gate.next_allowed_start(utc(2024, 10, 19, 20, 0))

        assert (start.hour, start.minute) == (7, 0)
        assert start.date().isoformat() == "2024-10-20"
