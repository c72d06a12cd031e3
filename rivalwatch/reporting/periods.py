"""Report periods in the operating timezone.

Bounds are inclusive on both ends and returned as aware datetimes, so
they compare correctly against the UTC timestamps stored on articles.
"""

from datetime import date, datetime, time, timedelta, tzinfo


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """00:00:00 to 23:59:59.999999 of ``day`` in ``tz``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return start, end


def week_start(day: date) -> date:
    """The Sunday on or before ``day``."""
    # weekday(): Monday=0 .. Sunday=6
    return day - timedelta(days=(day.weekday() + 1) % 7)


def week_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    """Sunday 00:00 through Saturday 23:59:59.999999 of the week containing ``day``."""
    sunday = week_start(day)
    start, _ = day_bounds(sunday, tz)
    _, end = day_bounds(sunday + timedelta(days=6), tz)
    return start, end


def today_in(tz: tzinfo) -> date:
    return datetime.now(tz).date()
