"""UTC datetime and calendar-day utilities."""

from datetime import date, datetime, timedelta, timezone
from typing import Iterator


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-aware datetime.

    This function should be used instead of datetime.now() or datetime.utcnow()
    to ensure all timestamps are timezone-aware and stored in UTC.

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return the current UTC calendar day."""
    return utc_now().date()


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """
    Return the half-open day range ``[first, first_of_next)`` for a month.

    Raises:
        ValueError: If month is outside 1-12 or year is not a valid year
    """
    start = date(year, month, 1)
    if month == 12:
        end = date(year + 1, 1, 1)
    else:
        end = date(year, month + 1, 1)
    return start, end


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every day in the half-open range ``[start, end)``."""
    day = start
    while day < end:
        yield day
        day += timedelta(days=1)


def single_day(day: date) -> tuple[date, date]:
    """Return the half-open range covering exactly one day: ``[day, day + 1)``."""
    return day, day + timedelta(days=1)
