from dataclasses import dataclass
from typing import Any

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.engine import Connection

from chef_bookings.db.writers._upsert import dialect_insert
from chef_bookings.errors import ConflictError, EventNotFound, ValidationError
from chef_bookings.models.popup_events import PopupEvent, PopupSeatPurchase, PopupUnmatchedPayment
from chef_bookings.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

MAX_SEAT_ADJUSTMENT = 1000

REQUIRED_EVENT_FIELDS = ("title", "price_cents", "capacity", "min_per_order", "max_per_order", "hidden")

EVENT_FIELDS = (
    "sku",
    "title",
    "location",
    "event_date",
    "start_time",
    "end_time",
    "price_cents",
    "capacity",
    "min_per_order",
    "max_per_order",
    "hidden",
    "details",
)


@dataclass(frozen=True)
class SeatRecord:
    """Outcome of recording one payment against an event's seat count."""

    recorded: int
    duplicate: bool
    clamped: bool


def _lock_event(conn: Connection, event_id: str) -> dict[str, Any]:
    row = conn.execute(
        select(PopupEvent).where(PopupEvent.id == event_id).with_for_update()
    ).mappings().first()
    if not row:
        raise EventNotFound(f"Pop-up event {event_id!r} not found")
    return dict(row)


def record_purchase(conn: Connection, event_id: str, payment_id: str, quantity: int) -> SeatRecord:
    """
    Add a paid purchase to an event's sold count, at most once per payment.

    The event row is locked first, then the ``(event_id, payment_id)`` ledger
    row is inserted with ``ON CONFLICT DO NOTHING``; a conflict means the
    payment was already counted. The increment is clamped so ``sold`` never
    exceeds ``capacity``.

    Args:
        conn: Active connection inside a transaction
        event_id: Event slug
        payment_id: Processor correlation id
        quantity: Seats paid for

    Returns:
        SeatRecord: seats actually added, whether it was a replay, whether it was clamped

    Raises:
        EventNotFound: If the event does not exist
        ValidationError: If quantity is not positive
    """
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    event = _lock_event(conn, event_id)
    remaining = max(0, event["capacity"] - event["sold"])
    recorded = min(quantity, remaining)

    inserted = conn.execute(
        dialect_insert(conn, PopupSeatPurchase)
        .values(
            event_id=event_id,
            payment_id=payment_id,
            quantity_requested=quantity,
            quantity_recorded=recorded,
            created_at=utc_now(),
        )
        .on_conflict_do_nothing(index_elements=["event_id", "payment_id"])
    ).rowcount

    if inserted == 0:
        logger.info("popup_purchase_duplicate", event_id=event_id, payment_id=payment_id)
        return SeatRecord(recorded=0, duplicate=True, clamped=False)

    if recorded:
        conn.execute(
            update(PopupEvent)
            .where(PopupEvent.id == event_id)
            .values(sold=event["sold"] + recorded, updated_at=utc_now())
        )

    clamped = recorded < quantity
    if clamped:
        logger.warning(
            "popup_purchase_clamped",
            event_id=event_id,
            payment_id=payment_id,
            requested=quantity,
            recorded=recorded,
        )
    else:
        logger.info("popup_purchase_recorded", event_id=event_id, payment_id=payment_id, recorded=recorded)

    return SeatRecord(recorded=recorded, duplicate=False, clamped=clamped)


def record_unmatched_payment(conn: Connection, event_id: str, payment_id: str, quantity: int) -> bool:
    """
    Remember a payment for an event that does not exist.

    Returns:
        bool: True the first time this payment id is recorded
    """
    inserted = conn.execute(
        dialect_insert(conn, PopupUnmatchedPayment)
        .values(event_id=event_id, payment_id=payment_id, quantity=quantity, created_at=utc_now())
        .on_conflict_do_nothing(index_elements=["payment_id"])
    ).rowcount
    return inserted == 1


def adjust_seats(conn: Connection, event_id: str, delta: int) -> dict[str, Any]:
    """
    Manually move an event's sold count by ``delta``, clamped to ``[0, capacity]``.

    Raises:
        ValidationError: If ``|delta|`` exceeds the adjustment bound
        EventNotFound: If the event does not exist
    """
    if abs(delta) > MAX_SEAT_ADJUSTMENT:
        raise ValidationError(f"Seat adjustment must be within +/-{MAX_SEAT_ADJUSTMENT}")

    event = _lock_event(conn, event_id)
    sold = max(0, min(event["capacity"], event["sold"] + delta))

    conn.execute(
        update(PopupEvent).where(PopupEvent.id == event_id).values(sold=sold, updated_at=utc_now())
    )
    logger.info("popup_seats_adjusted", event_id=event_id, delta=delta, sold=sold)

    event["sold"] = sold
    return event


def _validate_order_bounds(values: dict[str, Any]) -> None:
    low = values.get("min_per_order")
    high = values.get("max_per_order")
    if low is not None and high is not None and low > high:
        raise ValidationError("min_per_order cannot exceed max_per_order")


def create_popup_event(conn: Connection, event_id: str, data: dict[str, Any]) -> None:
    """
    Insert a new pop-up event with zero seats sold.

    Raises:
        ConflictError: If an event with this id already exists
    """
    values = {key: data[key] for key in EVENT_FIELDS if key in data}
    _validate_order_bounds(values)
    now = utc_now()

    result = conn.execute(
        dialect_insert(conn, PopupEvent)
        .values(id=event_id, sold=0, created_at=now, updated_at=now, **values)
        .on_conflict_do_nothing(index_elements=["id"])
    )
    if result.rowcount == 0:
        raise ConflictError(f"Pop-up event {event_id!r} already exists")

    logger.info("popup_event_created", event_id=event_id, capacity=values.get("capacity"))


def update_popup_event(conn: Connection, event_id: str, data: dict[str, Any]) -> dict[str, Any]:
    """
    Patch an event's catalogue fields. ``sold`` is only changed through the seat ledger.

    Raises:
        EventNotFound: If the event does not exist
        ValidationError: If a required field is nulled or capacity would drop
            below seats already sold
    """
    event = _lock_event(conn, event_id)
    values = {key: data[key] for key in EVENT_FIELDS if key in data}
    if not values:
        return event

    cleared = sorted(key for key in REQUIRED_EVENT_FIELDS if key in values and values[key] is None)
    if cleared:
        raise ValidationError(f"Fields cannot be null: {', '.join(cleared)}")

    merged = {**event, **values}
    _validate_order_bounds(merged)
    if merged["capacity"] < event["sold"]:
        raise ValidationError(f"Capacity cannot be below the {event['sold']} seats already sold")

    conn.execute(
        update(PopupEvent).where(PopupEvent.id == event_id).values(updated_at=utc_now(), **values)
    )
    logger.info("popup_event_updated", event_id=event_id, fields=sorted(values))
    return merged


def delete_popup_event(conn: Connection, event_id: str) -> None:
    conn.execute(delete(PopupSeatPurchase).where(PopupSeatPurchase.event_id == event_id))
    result = conn.execute(delete(PopupEvent).where(PopupEvent.id == event_id))
    if result.rowcount == 0:
        raise EventNotFound(f"Pop-up event {event_id!r} not found")

    logger.info("popup_event_deleted", event_id=event_id)
