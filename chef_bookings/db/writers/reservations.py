import enum
import uuid
from datetime import date
from typing import Any, Optional

import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.engine import Connection

from chef_bookings.db.writers._upsert import dialect_insert
from chef_bookings.errors import ReservationNotFound, SlotUnavailable
from chef_bookings.models.reservations import (
    Channel,
    DayClaim,
    Reservation,
    ReservationStatus,
)
from chef_bookings.utils.datetime import iter_days, single_day, utc_now

logger = structlog.get_logger(__name__)

CUSTOMER_FIELDS = (
    "customer_name",
    "customer_email",
    "customer_phone",
    "address_line1",
    "city",
    "state",
    "postal_code",
)

RESERVATION_FIELDS = CUSTOMER_FIELDS + (
    "start_date",
    "end_date",
    "package_id",
    "package_title",
    "party_size",
    "start_time",
    "notes",
    "subtotal_cents",
    "deposit_cents",
    "balance_cents",
    "addon_cents",
)


def _reservation_values(data: dict[str, Any]) -> dict[str, Any]:
    return {key: data[key] for key in RESERVATION_FIELDS if key in data}


def create_pending_reservation(conn: Connection, data: dict[str, Any]) -> uuid.UUID:
    """
    Insert a new online reservation in the ``pending`` state.

    Args:
        conn: Active connection inside a transaction
        data: Column values (dates, customer, package and pricing fields)

    Returns:
        UUID: The server-assigned reservation id
    """
    reservation_id = uuid.uuid4()
    now = utc_now()

    conn.execute(
        dialect_insert(conn, Reservation).values(
            id=reservation_id,
            status=ReservationStatus.PENDING.value,
            channel=Channel.ONLINE.value,
            requires_refund=False,
            created_at=now,
            updated_at=now,
            **_reservation_values(data),
        )
    )

    logger.info(
        "reservation_pending_created",
        reservation_id=str(reservation_id),
        start_date=str(data.get("start_date")),
    )
    return reservation_id


def attach_payment_correlation(conn: Connection, reservation_id: uuid.UUID, payment_id: str) -> None:
    """
    Stamp the processor's correlation id on a pending reservation after handoff.

    Never overwrites an id that is already attached.
    """
    conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.payment_correlation_id.is_(None))
        .values(payment_correlation_id=payment_id, updated_at=utc_now())
    )


def insert_reservation_for_payment(
    conn: Connection, payment_id: str, data: dict[str, Any]
) -> uuid.UUID:
    """
    Insert-or-get the reservation owning a payment, keyed on the correlation id.

    Used when a payment notification arrives without a usable pending row. The
    insert is ``ON CONFLICT DO NOTHING`` on ``payment_correlation_id``, so
    concurrent or repeated deliveries converge on a single row.

    Args:
        conn: Active connection inside a transaction
        payment_id: Processor correlation id
        data: Column values recovered from the notification metadata

    Returns:
        UUID: Id of the row that owns ``payment_id``
    """
    now = utc_now()
    stmt = (
        dialect_insert(conn, Reservation)
        .values(
            id=uuid.uuid4(),
            status=ReservationStatus.PENDING.value,
            channel=Channel.ONLINE.value,
            payment_correlation_id=payment_id,
            requires_refund=False,
            created_at=now,
            updated_at=now,
            **_reservation_values(data),
        )
        .on_conflict_do_nothing(index_elements=["payment_correlation_id"])
    )
    conn.execute(stmt)

    return conn.execute(
        select(Reservation.id).where(Reservation.payment_correlation_id == payment_id)
    ).scalar_one()


def _claim_one_day(conn: Connection, reservation_id: uuid.UUID, day: date, capacity: int) -> bool:
    for slot in range(capacity):
        stmt = (
            dialect_insert(conn, DayClaim)
            .values(day=day, slot=slot, reservation_id=reservation_id)
            .on_conflict_do_nothing()
        )
        if conn.execute(stmt).rowcount == 1:
            return True

    # A concurrent delivery for the same reservation may have taken the day first
    held = conn.execute(
        select(DayClaim.slot)
        .where(DayClaim.reservation_id == reservation_id)
        .where(DayClaim.day == day)
    ).first()
    return held is not None


def claim_days(
    conn: Connection,
    reservation_id: uuid.UUID,
    start: date,
    end: date,
    capacity: int,
) -> None:
    """
    Claim one slot per day in ``[start, end)`` for a reservation.

    Idempotent per reservation: days it already holds are skipped. The
    ``(day, slot)`` primary key is the only thing that arbitrates between
    different reservations racing for the same day.

    Raises:
        SlotUnavailable: If any day has no free slot left. The caller's
            transaction must be rolled back so partial claims are discarded.
    """
    held = set(
        conn.execute(
            select(DayClaim.day).where(DayClaim.reservation_id == reservation_id)
        ).scalars()
    )

    for day in iter_days(start, end):
        if day in held:
            continue
        if not _claim_one_day(conn, reservation_id, day, capacity):
            logger.warning(
                "reservation_day_full",
                reservation_id=str(reservation_id),
                day=day.isoformat(),
                capacity=capacity,
            )
            raise SlotUnavailable(f"{day.isoformat()} is already booked")


def release_days(conn: Connection, reservation_id: uuid.UUID) -> None:
    conn.execute(delete(DayClaim).where(DayClaim.reservation_id == reservation_id))


class ConfirmResult(str, enum.Enum):
    """What a confirmation attempt did to the row."""

    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    REJECTED = "rejected"


def confirm_reservation(
    conn: Connection,
    reservation_id: uuid.UUID,
    payment_id: str,
    customer: Optional[dict[str, Any]] = None,
) -> ConfirmResult:
    """
    Conditionally move a pending reservation to ``confirmed`` and attach its payment.

    Single-row update keyed by primary id, guarded on ``status = pending``, so
    of several deliveries racing on the same row exactly one sees
    ``CONFIRMED``. Customer fields are back-filled only where the stored value
    is still NULL.

    Args:
        conn: Active connection inside a transaction
        reservation_id: Reservation primary key
        payment_id: Processor correlation id
        customer: Contact fields reported by the processor

    Returns:
        ConfirmResult: ``ALREADY_CONFIRMED`` when the row is confirmed with this
        payment, ``REJECTED`` when it is missing, canceled, or owned by another
        payment
    """
    now = utc_now()
    values: dict[str, Any] = {
        "status": ReservationStatus.CONFIRMED.value,
        "payment_correlation_id": payment_id,
        "confirmed_at": now,
        "updated_at": now,
    }
    for field, value in (customer or {}).items():
        if field in CUSTOMER_FIELDS and value:
            values[field] = func.coalesce(getattr(Reservation, field), value)

    result = conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.status == ReservationStatus.PENDING.value)
        .where(
            or_(
                Reservation.payment_correlation_id.is_(None),
                Reservation.payment_correlation_id == payment_id,
            )
        )
        .values(**values)
    )
    if result.rowcount == 1:
        return ConfirmResult.CONFIRMED

    current = conn.execute(
        select(Reservation.status, Reservation.payment_correlation_id).where(Reservation.id == reservation_id)
    ).first()
    if (
        current is not None
        and current.status == ReservationStatus.CONFIRMED.value
        and current.payment_correlation_id == payment_id
    ):
        return ConfirmResult.ALREADY_CONFIRMED
    return ConfirmResult.REJECTED


def flag_requires_refund(conn: Connection, reservation_id: uuid.UUID, payment_id: str) -> bool:
    """
    Mark a paid reservation that could not be confirmed for manual refund.

    Returns:
        bool: True only for the call that set the flag
    """
    result = conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .where(Reservation.requires_refund.is_(False))
        .values(
            requires_refund=True,
            payment_correlation_id=func.coalesce(Reservation.payment_correlation_id, payment_id),
            updated_at=utc_now(),
        )
    )
    if result.rowcount == 0:
        return False

    logger.warning(
        "reservation_requires_refund",
        reservation_id=str(reservation_id),
        payment_id=payment_id,
    )
    return True


def create_manual_reservation(
    conn: Connection,
    day: date,
    capacity: int,
    customer_name: Optional[str] = None,
    customer_email: Optional[str] = None,
    notes: Optional[str] = None,
) -> uuid.UUID:
    """
    Insert an admin-entered booking directly as ``confirmed`` (no payment).

    Raises:
        SlotUnavailable: If the day is already at capacity
    """
    start, end = single_day(day)
    reservation_id = uuid.uuid4()
    now = utc_now()

    conn.execute(
        dialect_insert(conn, Reservation).values(
            id=reservation_id,
            start_date=start,
            end_date=end,
            status=ReservationStatus.CONFIRMED.value,
            channel=Channel.MANUAL.value,
            customer_name=customer_name or None,
            customer_email=customer_email or None,
            notes=notes or None,
            requires_refund=False,
            created_at=now,
            updated_at=now,
            confirmed_at=now,
        )
    )
    claim_days(conn, reservation_id, start, end, capacity)

    logger.info("reservation_manual_created", reservation_id=str(reservation_id), day=day.isoformat())
    return reservation_id


def cancel_reservation(conn: Connection, reservation_id: uuid.UUID) -> None:
    """
    Cancel a reservation and release its claimed days.

    Raises:
        ReservationNotFound: If no reservation has this id
    """
    result = conn.execute(
        update(Reservation)
        .where(Reservation.id == reservation_id)
        .values(status=ReservationStatus.CANCELED.value, updated_at=utc_now())
    )
    if result.rowcount == 0:
        raise ReservationNotFound(f"Reservation {reservation_id} not found")

    release_days(conn, reservation_id)
    logger.info("reservation_canceled", reservation_id=str(reservation_id))


def delete_reservation(conn: Connection, reservation_id: uuid.UUID) -> None:
    """
    Permanently delete a reservation (admin cleanup of orphaned pending rows included).

    Raises:
        ReservationNotFound: If no reservation has this id
    """
    release_days(conn, reservation_id)
    result = conn.execute(delete(Reservation).where(Reservation.id == reservation_id))
    if result.rowcount == 0:
        raise ReservationNotFound(f"Reservation {reservation_id} not found")

    logger.info("reservation_deleted", reservation_id=str(reservation_id))
