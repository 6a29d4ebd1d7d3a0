import uuid
from datetime import date
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.engine import Connection

from chef_bookings.models.reservations import Reservation, ReservationStatus
from chef_bookings.utils.datetime import month_bounds


def get_reservation(conn: Connection, reservation_id: uuid.UUID) -> Optional[dict[str, Any]]:
    """
    Fetch a reservation by primary key.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        reservation_id (UUID): Reservation id.

    Returns:
        Optional[dict[str, Any]]: Row as a dict, or None if not found.
    """
    row = conn.execute(
        select(Reservation).where(Reservation.id == reservation_id)
    ).mappings().first()
    return dict(row) if row else None


def get_reservation_by_payment(conn: Connection, payment_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch the reservation owning a processor correlation id.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        payment_id (str): Processor correlation id.

    Returns:
        Optional[dict[str, Any]]: Row as a dict, or None if not found.
    """
    row = conn.execute(
        select(Reservation).where(Reservation.payment_correlation_id == payment_id)
    ).mappings().first()
    return dict(row) if row else None


def list_reservations_overlapping(
    conn: Connection,
    start: date,
    end: date,
    status: Optional[ReservationStatus] = None,
) -> list[dict[str, Any]]:
    """
    Fetch reservations whose ``[start_date, end_date)`` intersects ``[start, end)``.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        start (date): Window start (inclusive).
        end (date): Window end (exclusive).
        status (Optional[ReservationStatus]): Restrict to one status.

    Returns:
        list[dict[str, Any]]: Reservation rows ordered by start date.
    """
    stmt = (
        select(Reservation)
        .where(Reservation.start_date < end)
        .where(Reservation.end_date > start)
        .order_by(Reservation.start_date, Reservation.created_at)
    )
    if status is not None:
        stmt = stmt.where(Reservation.status == status.value)

    return [dict(row) for row in conn.execute(stmt).mappings()]


def list_reservations_for_month(conn: Connection, year: int, month: int) -> list[dict[str, Any]]:
    """Every reservation touching the given month, any status (admin listing)."""
    start, end = month_bounds(year, month)
    return list_reservations_overlapping(conn, start, end)


def list_confirmed_in_range(conn: Connection, start: date, end: date) -> list[dict[str, Any]]:
    return list_reservations_overlapping(conn, start, end, status=ReservationStatus.CONFIRMED)
