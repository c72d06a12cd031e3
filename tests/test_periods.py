"""Tests for report day/week boundaries."""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from rivalwatch.reporting.periods import day_bounds, week_bounds, week_start

TOKYO = ZoneInfo("Asia/Tokyo")


class TestDayBounds:
    def test_covers_whole_local_day(self) -> None:
        start, end = day_bounds(date(2026, 10, 19), TOKYO)

        assert start == datetime(2026, 10, 19, 0, 0, tzinfo=TOKYO)
        assert end == datetime(2026, 10, 19, 23, 59, 59, 999999, tzinfo=TOKYO)
        assert start.utcoffset() == timedelta(hours=9)


class TestWeekBounds:
    def test_mid_week_maps_to_sunday_through_saturday(self) -> None:
        start, end = week_bounds(date(2026, 10, 21), TOKYO)  # Wednesday

        assert start == datetime(2026, 10, 18, 0, 0, tzinfo=TOKYO)
        assert end == datetime(2026, 10, 24, 23, 59, 59, 999999, tzinfo=TOKYO)

    def test_sunday_starts_its_own_week(self) -> None:
        assert week_start(date(2026, 10, 18)) == date(2026, 10, 18)

    def test_saturday_belongs_to_previous_sunday(self) -> None:
        assert week_start(date(2026, 10, 24)) == date(2026, 10, 18)
