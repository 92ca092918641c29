"""
Clock and Chain Time Tests.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from core.clock import (
    MockClock,
    crossed_minute_boundary,
    last_minute_window,
    parse_chain_time,
    start_of_day,
    to_naive_utc,
    truncate_to_minute,
)


class TestParseChainTime:
    """Tests for block time parsing."""

    def test_nanoseconds_truncated_to_micro(self):
        parsed = parse_chain_time("2021-10-01T12:00:30.123456789Z")
        assert parsed == datetime(2021, 10, 1, 12, 0, 30, 123456)
        assert parsed.tzinfo is None

    def test_without_fraction(self):
        assert parse_chain_time("2021-10-01T12:00:30Z") == datetime(2021, 10, 1, 12, 0, 30)

    def test_offset_converted_to_utc(self):
        assert parse_chain_time("2021-10-01T14:00:30+02:00") == datetime(2021, 10, 1, 12, 0, 30)

    def test_invalid_raises(self):
        with pytest.raises(ValueError):
            parse_chain_time("yesterday")


class TestMinuteHelpers:
    """Tests for minute truncation and windows."""

    def test_truncate(self):
        assert truncate_to_minute(datetime(2021, 1, 1, 12, 1, 59, 999)) == datetime(2021, 1, 1, 12, 1)

    def test_crossed_boundary(self):
        assert not crossed_minute_boundary(datetime(2021, 1, 1, 12, 0, 30), datetime(2021, 1, 1, 12, 0, 45))
        assert crossed_minute_boundary(datetime(2021, 1, 1, 12, 0, 45), datetime(2021, 1, 1, 12, 1, 10))

    def test_same_minute_of_different_hours_is_a_boundary(self):
        assert crossed_minute_boundary(datetime(2021, 1, 1, 12, 5, 0), datetime(2021, 1, 1, 13, 5, 0))

    def test_aware_and_naive_compare_in_utc(self):
        aware = datetime(2021, 1, 1, 12, 0, 30, tzinfo=timezone.utc)
        assert not crossed_minute_boundary(aware, datetime(2021, 1, 1, 12, 0, 50))

    def test_last_minute_window(self):
        start, end = last_minute_window(datetime(2021, 1, 1, 12, 1, 10))
        assert start == datetime(2021, 1, 1, 12, 0)
        assert end == datetime(2021, 1, 1, 12, 1)

    def test_start_of_day(self):
        assert start_of_day(datetime(2021, 1, 1, 12, 1, 10)) == datetime(2021, 1, 1)


class TestMockClock:
    """Tests for MockClock."""

    def test_today_and_start_of_today(self):
        clock = MockClock(datetime(2021, 3, 4, 15, 30))
        assert clock.today() == date(2021, 3, 4)
        assert clock.start_of_today() == datetime(2021, 3, 4)

    def test_advance(self):
        clock = MockClock(datetime(2021, 3, 4, 23, 59))
        clock.advance(minutes=2)
        assert to_naive_utc(clock.now()) == datetime(2021, 3, 5, 0, 1)

    def test_set_time(self):
        clock = MockClock(datetime(2021, 3, 4))
        clock.set_time(datetime(2021, 3, 4) + timedelta(days=1))
        assert clock.today() == date(2021, 3, 5)
