from datetime import datetime, time, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Connection

from chef_bookings.models.gift_cards import GiftCard
from chef_bookings.utils.datetime import month_bounds


def list_gift_cards_for_month(conn: Connection, year: int, month: int) -> list[dict[str, Any]]:
    """
    Fetch gift cards purchased during a calendar month (UTC), newest first.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        year (int): Calendar year.
        month (int): Calendar month, 1-12.

    Returns:
        list[dict[str, Any]]: Gift card rows.
    """
    start, end = month_bounds(year, month)
    lower = datetime.combine(start, time.min, tzinfo=timezone.utc)
    upper = datetime.combine(end, time.min, tzinfo=timezone.utc)

    result = conn.execute(
        select(GiftCard)
        .where(GiftCard.created_at >= lower)
        .where(GiftCard.created_at < upper)
        .order_by(GiftCard.created_at.desc())
    )
    return [dict(row) for row in result.mappings()]
