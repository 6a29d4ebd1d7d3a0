from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from chef_bookings.models.popup_events import PopupEvent


def get_popup_event(conn: Connection, event_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch a pop-up event by its slug.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        event_id (str): Event slug.

    Returns:
        Optional[dict[str, Any]]: Row as a dict, or None if not found.
    """
    row = conn.execute(select(PopupEvent).where(PopupEvent.id == event_id)).mappings().first()
    return dict(row) if row else None


def list_popup_events(conn: Connection, include_hidden: bool = False) -> list[dict[str, Any]]:
    stmt = select(PopupEvent).order_by(PopupEvent.event_date, PopupEvent.id)
    if not include_hidden:
        stmt = stmt.where(PopupEvent.hidden.is_(False))
    return [dict(row) for row in conn.execute(stmt).mappings()]


def seats_remaining(event: dict[str, Any]) -> int:
    return max(0, event["capacity"] - event["sold"])
