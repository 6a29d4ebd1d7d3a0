from collections import Counter
from datetime import date
from typing import Any, Iterable, Optional

import structlog
from sqlalchemy.engine import Engine

from chef_bookings.config import RESOURCE_CAPACITY_PER_DAY
from chef_bookings.db.readers.blackouts import list_blackouts_overlapping
from chef_bookings.db.readers.reservations import list_confirmed_in_range
from chef_bookings.errors import ValidationError
from chef_bookings.utils.datetime import iter_days, month_bounds, single_day

logger = structlog.get_logger(__name__)


def month_range(year: int, month: int) -> tuple[date, date]:
    """Half-open ``[first, first_of_next)`` for a month, as a ValidationError on bad input."""
    try:
        return month_bounds(year, month)
    except ValueError as e:
        raise ValidationError(f"Invalid year/month: {year}-{month}") from e


def expand_days(start: date, end: date) -> list[date]:
    return list(iter_days(start, end))


def blocked_days(
    reservations: Iterable[dict[str, Any]],
    blackouts: Iterable[dict[str, Any]],
    window_start: date,
    window_end: date,
    capacity: int,
) -> set[date]:
    """
    Compute blocked days inside ``[window_start, window_end)``.

    Every blackout day is blocked. A day is blocked by reservations once the
    number of reservations covering it reaches ``capacity``. Callers pass
    confirmed reservations only.
    """
    blocked: set[date] = set()
    for row in blackouts:
        blocked.update(expand_days(row["start_date"], row["end_date"]))

    per_day: Counter[date] = Counter()
    for row in reservations:
        per_day.update(expand_days(row["start_date"], row["end_date"]))
    blocked.update(day for day, count in per_day.items() if count >= capacity)

    return {day for day in blocked if window_start <= day < window_end}


def get_blocked_dates(
    engine: Engine, year: int, month: int, capacity: Optional[int] = None
) -> list[str]:
    """
    Blocked calendar days for a month as sorted ``YYYY-MM-DD`` strings.

    Reads confirmed reservations and blackout ranges only; pending and
    canceled reservations never block a date.

    Raises:
        ValidationError: If year/month do not name a calendar month
    """
    start, end = month_range(year, month)
    if capacity is None:
        capacity = RESOURCE_CAPACITY_PER_DAY

    with engine.connect() as conn:
        reservations = list_confirmed_in_range(conn, start, end)
        blackouts = list_blackouts_overlapping(conn, start, end)

    days = blocked_days(reservations, blackouts, start, end, capacity)
    logger.debug("availability_computed", year=year, month=month, blocked=len(days))
    return sorted(day.isoformat() for day in days)


def is_date_blocked(engine: Engine, day: date, capacity: Optional[int] = None) -> bool:
    start, end = single_day(day)
    if capacity is None:
        capacity = RESOURCE_CAPACITY_PER_DAY

    with engine.connect() as conn:
        reservations = list_confirmed_in_range(conn, start, end)
        blackouts = list_blackouts_overlapping(conn, start, end)

    return day in blocked_days(reservations, blackouts, start, end, capacity)
