from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Connection

from chef_bookings.models.blackouts import BlackoutRange
from chef_bookings.utils.datetime import month_bounds


def list_blackouts_overlapping(conn: Connection, start: date, end: date) -> list[dict[str, Any]]:
    """
    Fetch blackout ranges intersecting the half-open window ``[start, end)``.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        start (date): Window start (inclusive).
        end (date): Window end (exclusive).

    Returns:
        list[dict[str, Any]]: Blackout rows ordered by start date.
    """
    result = conn.execute(
        select(BlackoutRange)
        .where(BlackoutRange.start_date < end)
        .where(BlackoutRange.end_date > start)
        .order_by(BlackoutRange.start_date)
    )
    return [dict(row) for row in result.mappings()]


def list_blackouts_for_month(conn: Connection, year: int, month: int) -> list[dict[str, Any]]:
    start, end = month_bounds(year, month)
    return list_blackouts_overlapping(conn, start, end)
