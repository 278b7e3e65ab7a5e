"""
Tests for the injectable clock.
"""
from datetime import date, datetime, timezone

from collections_service.core.clock import FixedClock, SystemClock


def test_system_clock_is_utc():
    assert SystemClock().now().tzinfo == timezone.utc


def test_fixed_clock_makes_naive_datetimes_utc():
    clock = FixedClock(datetime(2024, 1, 31, 23, 30))
    assert clock.now() == datetime(2024, 1, 31, 23, 30, tzinfo=timezone.utc)
    assert clock.today() == date(2024, 1, 31)


def test_fixed_clock_advance():
    clock = FixedClock(datetime(2024, 1, 31, tzinfo=timezone.utc))
    clock.advance(days=1)
    assert clock.today() == date(2024, 2, 1)
