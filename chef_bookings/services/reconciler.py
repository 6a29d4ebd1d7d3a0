"""
Payment reconciliation for Stripe Checkout completions.

Turns a verified ``checkout.session.*`` event into durable state: a confirmed
reservation, a minted gift card, or counted pop-up seats. Every write is keyed
on the Stripe session id, so at-least-once and out-of-order delivery converge
on the same result. Notifications go out after commit and only for first-time
state changes.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional

import pydantic
import structlog
from sqlalchemy.engine import Connection, Engine

from chef_bookings.config import RESOURCE_CAPACITY_PER_DAY
from chef_bookings.db.readers.popup_events import get_popup_event
from chef_bookings.db.readers.reservations import get_reservation, get_reservation_by_payment
from chef_bookings.db.writers.gift_cards import issue_gift_card
from chef_bookings.db.writers.popup_events import record_purchase, record_unmatched_payment
from chef_bookings.db.writers.reservations import (
    ConfirmResult,
    claim_days,
    confirm_reservation,
    flag_requires_refund,
    insert_reservation_for_payment,
)
from chef_bookings.errors import EventNotFound, ReservationUnconfirmable, SlotUnavailable
from chef_bookings.metrics import reconcile_outcomes
from chef_bookings.models.reservations import ReservationStatus
from chef_bookings.schemas.payments import (
    GiftCardPurchase,
    PopupPurchase,
    ReservationPurchase,
    parse_purchase,
)
from chef_bookings.services.notifications import (
    dispatch,
    notify_gift_card_issued,
    notify_popup_seats,
    notify_refund_required,
    notify_reservation_confirmed,
)
from chef_bookings.utils.datetime import single_day

logger = structlog.get_logger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
HANDLED_EVENT_TYPES = {SESSION_COMPLETED, ASYNC_PAYMENT_SUCCEEDED}
SETTLED_PAYMENT_STATUSES = {"paid", "no_payment_required"}


@dataclass(frozen=True)
class ReconcileOutcome:
    """
    What one delivery did.

    ``action`` is one of: confirmed, duplicate, requires_refund, issued,
    recorded, clamped, ignored, invalid.
    """

    action: str
    purchase_kind: Optional[str] = None
    payment_id: Optional[str] = None
    record_id: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}


def _record(outcome: ReconcileOutcome) -> ReconcileOutcome:
    reconcile_outcomes.labels(
        purchase_kind=outcome.purchase_kind or "unknown", outcome=outcome.action
    ).inc()
    return outcome


def reconcile_event(engine: Engine, event: dict[str, Any]) -> ReconcileOutcome:
    """
    Apply one verified Stripe event.

    Args:
        engine: SQLAlchemy engine
        event: Decoded event (``type`` and ``data.object``)

    Returns:
        ReconcileOutcome: The action taken; unhandled types come back ``ignored``

    Raises:
        sqlalchemy.exc.SQLAlchemyError: Persistence failures propagate so the
            caller can answer with a retryable error
    """
    event_type = event.get("type")
    if event_type not in HANDLED_EVENT_TYPES:
        logger.debug("stripe_event_ignored", event_type=event_type, event_id=event.get("id"))
        return ReconcileOutcome(action="ignored", detail=f"unhandled event type {event_type}")

    session = (event.get("data") or {}).get("object") or {}
    return reconcile_session(engine, session, event_type=event_type)


def reconcile_session(
    engine: Engine, session: dict[str, Any], event_type: str = SESSION_COMPLETED
) -> ReconcileOutcome:
    """
    Apply one completed Checkout Session (webhook payload or replayed session).
    """
    payment_id = session.get("id")
    if not payment_id:
        logger.warning("stripe_session_missing_id", event_type=event_type)
        return ReconcileOutcome(action="invalid", detail="session has no id")

    if event_type == SESSION_COMPLETED and session.get("payment_status") not in SETTLED_PAYMENT_STATUSES:
        logger.info(
            "stripe_session_awaiting_payment",
            payment_id=payment_id,
            payment_status=session.get("payment_status"),
        )
        return ReconcileOutcome(action="ignored", payment_id=payment_id, detail="payment not settled")

    try:
        purchase = parse_purchase(session.get("metadata") or {})
    except pydantic.ValidationError as e:
        logger.warning(
            "stripe_metadata_invalid",
            payment_id=payment_id,
            errors=e.errors(include_url=False, include_input=False),
        )
        return _record(ReconcileOutcome(action="invalid", payment_id=payment_id, detail="invalid metadata"))

    with structlog.contextvars.bound_contextvars(payment_id=payment_id, purchase_kind=purchase.purchase_kind):
        if isinstance(purchase, GiftCardPurchase):
            return _record(_reconcile_gift_card(engine, payment_id, purchase, session))
        if isinstance(purchase, PopupPurchase):
            return _record(_reconcile_popup(engine, payment_id, purchase, session))
        return _record(_reconcile_reservation(engine, payment_id, purchase, session))


# =============================================================================
# Reservations
# =============================================================================


def _customer_fields(purchase: ReservationPurchase, session: dict[str, Any]) -> dict[str, Optional[str]]:
    details = session.get("customer_details") or {}
    address = details.get("address") or {}
    return {
        "customer_name": purchase.full_name or details.get("name"),
        "customer_email": purchase.email or details.get("email"),
        "customer_phone": purchase.phone or details.get("phone"),
        "address_line1": purchase.address_line1 or address.get("line1"),
        "city": purchase.city or address.get("city"),
        "state": purchase.state or address.get("state"),
        "postal_code": purchase.zip or address.get("postal_code"),
    }


def _parse_uuid(value: Optional[str]) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


def _resolve_reservation(
    conn: Connection,
    payment_id: str,
    purchase: ReservationPurchase,
    customer: dict[str, Optional[str]],
    session: dict[str, Any],
) -> Optional[dict[str, Any]]:
    """
    Find the reservation a payment belongs to, synthesizing one if needed.

    Lookup order: the row already owning the payment id, then the reservation
    id from metadata, then an insert-or-get keyed on the payment id built from
    the metadata fields.
    """
    reservation = get_reservation_by_payment(conn, payment_id)
    if reservation is None:
        reservation_id = _parse_uuid(purchase.reservation_id)
        reservation = get_reservation(conn, reservation_id) if reservation_id else None
    if reservation is not None:
        return reservation

    if purchase.event_date is None:
        return None

    if purchase.reservation_id:
        logger.warning(
            "reservation_missing_for_payment",
            reservation_id=purchase.reservation_id,
            payment_id=payment_id,
        )

    start, end = single_day(purchase.event_date)
    new_id = insert_reservation_for_payment(
        conn,
        payment_id,
        {
            "start_date": start,
            "end_date": end,
            "package_id": purchase.package,
            "package_title": purchase.package_title,
            "party_size": purchase.guests,
            "start_time": purchase.start_time,
            "notes": purchase.diet_notes,
            "deposit_cents": session.get("amount_total") or 0,
            **customer,
        },
    )
    return get_reservation(conn, new_id)


def _paid_by_other(reservation: dict[str, Any], payment_id: str) -> bool:
    owner = reservation["payment_correlation_id"]
    return bool(owner) and owner != payment_id


def _refund_reason(reservation: dict[str, Any], payment_id: str) -> Optional[str]:
    if _paid_by_other(reservation, payment_id):
        return "reservation_paid_by_other_payment"
    if reservation["status"] == ReservationStatus.CANCELED.value:
        return "reservation_canceled"
    return None


def _refund_row(
    conn: Connection,
    payment_id: str,
    reservation: dict[str, Any],
    customer: dict[str, Optional[str]],
    session: dict[str, Any],
) -> dict[str, Any]:
    """
    Row tracking a payment for a reservation another payment already owns.

    The owning reservation is left untouched; the extra payment gets its own
    pending row keyed on its session id so redeliveries find it.
    """
    new_id = insert_reservation_for_payment(
        conn,
        payment_id,
        {
            "start_date": reservation["start_date"],
            "end_date": reservation["end_date"],
            "package_id": reservation["package_id"],
            "package_title": reservation["package_title"],
            "party_size": reservation["party_size"],
            "start_time": reservation["start_time"],
            "deposit_cents": session.get("amount_total") or 0,
            **customer,
        },
    )
    return get_reservation(conn, new_id)


def _flag_for_refund(
    conn: Connection,
    payment_id: str,
    reservation: dict[str, Any],
    customer: dict[str, Optional[str]],
    session: dict[str, Any],
) -> tuple[dict[str, Any], bool]:
    """
    Flag the row tracking this payment; returns it and whether this call set the flag.
    """
    if _paid_by_other(reservation, payment_id):
        reservation = _refund_row(conn, payment_id, reservation, customer, session)
    newly_flagged = flag_requires_refund(conn, reservation["id"], payment_id)
    return reservation, newly_flagged


def _reconcile_reservation(
    engine: Engine,
    payment_id: str,
    purchase: ReservationPurchase,
    session: dict[str, Any],
) -> ReconcileOutcome:
    customer = _customer_fields(purchase, session)
    refund_reason: Optional[str] = None
    newly_flagged = False

    try:
        with engine.begin() as conn:
            reservation = _resolve_reservation(conn, payment_id, purchase, customer, session)
            if reservation is None:
                logger.warning("reservation_payment_without_date", payment_id=payment_id)
                return ReconcileOutcome(
                    action="ignored",
                    purchase_kind="reservation",
                    payment_id=payment_id,
                    detail="no reservation id or event date in metadata",
                )

            reservation_id = reservation["id"]
            owned = reservation["payment_correlation_id"] == payment_id
            already_confirmed = owned and reservation["status"] == ReservationStatus.CONFIRMED.value
            already_flagged = owned and reservation["requires_refund"]
            if already_confirmed or already_flagged:
                return _duplicate_reservation(payment_id, reservation_id)

            refund_reason = _refund_reason(reservation, payment_id)
            if refund_reason:
                reservation, newly_flagged = _flag_for_refund(conn, payment_id, reservation, customer, session)
                reservation_id = reservation["id"]
            else:
                claim_days(
                    conn,
                    reservation_id,
                    reservation["start_date"],
                    reservation["end_date"],
                    RESOURCE_CAPACITY_PER_DAY,
                )
                result = confirm_reservation(conn, reservation_id, payment_id, customer)
                if result is ConfirmResult.ALREADY_CONFIRMED:
                    return _duplicate_reservation(payment_id, reservation_id)
                if result is ConfirmResult.REJECTED:
                    raise ReservationUnconfirmable(f"Reservation {reservation_id} can no longer be confirmed")
                reservation = get_reservation(conn, reservation_id)

    except (SlotUnavailable, ReservationUnconfirmable) as e:
        # Confirmation and its day claims rolled back; track the payment for refund instead
        with engine.begin() as conn:
            reservation = _resolve_reservation(conn, payment_id, purchase, customer, session)
            if isinstance(e, SlotUnavailable):
                refund_reason = "slot_unavailable"
            else:
                refund_reason = _refund_reason(reservation, payment_id) or "confirmation_rejected"
            reservation, newly_flagged = _flag_for_refund(conn, payment_id, reservation, customer, session)
            reservation_id = reservation["id"]

    if refund_reason:
        if not newly_flagged:
            return _duplicate_reservation(payment_id, reservation_id)
        dispatch(
            notify_refund_required,
            "reservation",
            payment_id,
            refund_reason,
            reservation_id=str(reservation_id),
            event_date=reservation["start_date"].isoformat(),
            customer_email=reservation.get("customer_email") or customer.get("customer_email"),
        )
        return ReconcileOutcome(
            action="requires_refund",
            purchase_kind="reservation",
            payment_id=payment_id,
            record_id=str(reservation_id),
            detail=refund_reason,
        )

    logger.info(
        "reservation_confirmed",
        reservation_id=str(reservation_id),
        payment_id=payment_id,
        start_date=reservation["start_date"].isoformat(),
    )
    dispatch(notify_reservation_confirmed, reservation, payment_id)
    return ReconcileOutcome(
        action="confirmed",
        purchase_kind="reservation",
        payment_id=payment_id,
        record_id=str(reservation_id),
    )


def _duplicate_reservation(payment_id: str, reservation_id: uuid.UUID) -> ReconcileOutcome:
    logger.info("reservation_payment_duplicate", reservation_id=str(reservation_id), payment_id=payment_id)
    return ReconcileOutcome(
        action="duplicate",
        purchase_kind="reservation",
        payment_id=payment_id,
        record_id=str(reservation_id),
    )


# =============================================================================
# Gift cards
# =============================================================================


def _reconcile_gift_card(
    engine: Engine, payment_id: str, purchase: GiftCardPurchase, session: dict[str, Any]
) -> ReconcileOutcome:
    details = session.get("customer_details") or {}
    with engine.begin() as conn:
        card, created = issue_gift_card(
            conn,
            payment_id,
            purchase.amount_cents,
            buyer={
                "name": purchase.buyer_name or details.get("name"),
                "email": purchase.buyer_email or details.get("email"),
            },
            recipient={"name": purchase.recipient_name, "email": purchase.recipient_email},
            message=purchase.message,
        )

    if not created:
        logger.info("gift_card_payment_duplicate", gift_card_id=card["id"], payment_id=payment_id)
        return ReconcileOutcome(
            action="duplicate",
            purchase_kind="gift_card",
            payment_id=payment_id,
            record_id=str(card["id"]),
        )

    dispatch(notify_gift_card_issued, card)
    return ReconcileOutcome(
        action="issued",
        purchase_kind="gift_card",
        payment_id=payment_id,
        record_id=str(card["id"]),
    )


# =============================================================================
# Pop-up seats
# =============================================================================


def _reconcile_popup(
    engine: Engine, payment_id: str, purchase: PopupPurchase, session: dict[str, Any]
) -> ReconcileOutcome:
    try:
        with engine.begin() as conn:
            record = record_purchase(conn, purchase.event_id, payment_id, purchase.quantity)
            event = get_popup_event(conn, purchase.event_id)
    except EventNotFound:
        with engine.begin() as conn:
            first_delivery = record_unmatched_payment(conn, purchase.event_id, payment_id, purchase.quantity)
        if not first_delivery:
            return ReconcileOutcome(
                action="duplicate",
                purchase_kind="popup_event",
                payment_id=payment_id,
                record_id=purchase.event_id,
            )

        logger.error("popup_payment_for_missing_event", event_id=purchase.event_id, payment_id=payment_id)
        dispatch(
            notify_refund_required,
            "popup_event",
            payment_id,
            "event_not_found",
            event_id=purchase.event_id,
            quantity=purchase.quantity,
        )
        return ReconcileOutcome(
            action="requires_refund",
            purchase_kind="popup_event",
            payment_id=payment_id,
            record_id=purchase.event_id,
            detail="event_not_found",
        )

    if record.duplicate:
        return ReconcileOutcome(
            action="duplicate",
            purchase_kind="popup_event",
            payment_id=payment_id,
            record_id=purchase.event_id,
        )

    details = session.get("customer_details") or {}
    email = purchase.email or details.get("email")
    name = purchase.name or details.get("name")

    if record.recorded:
        dispatch(notify_popup_seats, event, payment_id, record.recorded, email=email, name=name)
    if record.clamped:
        dispatch(
            notify_refund_required,
            "popup_event",
            payment_id,
            "seats_oversold",
            event_id=purchase.event_id,
            requested=purchase.quantity,
            recorded=record.recorded,
            buyer_email=email,
        )

    return ReconcileOutcome(
        action="clamped" if record.clamped else "recorded",
        purchase_kind="popup_event",
        payment_id=payment_id,
        record_id=purchase.event_id,
        detail=f"{record.recorded} of {purchase.quantity} seats recorded",
    )
