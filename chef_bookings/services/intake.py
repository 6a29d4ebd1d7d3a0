"""
Checkout intake for reservations, gift cards and pop-up seats.

Each entry point validates before any write, then hands off to Stripe
Checkout. No database transaction is held open while Stripe is called.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine

from chef_bookings.db.readers.popup_events import get_popup_event, seats_remaining
from chef_bookings.db.writers.reservations import (
    attach_payment_correlation,
    create_pending_reservation,
)
from chef_bookings.errors import (
    CaptchaFailed,
    DateUnavailable,
    DownstreamError,
    EventNotFound,
    ValidationError,
)
from chef_bookings.metrics import booking_rejections, checkouts_created
from chef_bookings.schemas.bookings import (
    BookingPayload,
    GiftCardCheckoutPayload,
    PopupCheckoutPayload,
)
from chef_bookings.services.availability import is_date_blocked
from chef_bookings.services.captcha import verify_captcha
from chef_bookings.services.pricing import Quote, quote
from chef_bookings.services.service_area import ensure_in_service_area
from chef_bookings.stripe_api.checkout import CheckoutHandoff, create_checkout
from chef_bookings.utils.datetime import single_day, utc_today

logger = structlog.get_logger(__name__)

GIFT_CARD_MIN_DOLLARS = 25
GIFT_CARD_MAX_DOLLARS = 2000
METADATA_VALUE_LIMIT = 500  # Stripe per-value limit


@dataclass(frozen=True)
class BookingHandoff:
    reservation_id: UUID
    payment_id: str
    redirect_url: str
    quote: Quote


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def _require(value: Optional[str], message: str) -> str:
    cleaned = _clean(value)
    if not cleaned:
        raise ValidationError(message)
    return cleaned


def _validate_booking(engine: Engine, request: BookingPayload, client_ip: Optional[str]) -> Quote:
    if not verify_captcha(request.recaptcha_token, client_ip):
        raise CaptchaFailed("reCAPTCHA failed. Please retry.")

    _require(request.email, "Email is required.")
    ensure_in_service_area(request.state, request.postal_code)

    if request.event_date < utc_today():
        raise DateUnavailable("That date has already passed.")

    booking_quote = quote(
        request.package_id,
        request.party_size,
        addons=request.addons,
        access_code=request.access_code,
        event_date=request.event_date,
    )

    if is_date_blocked(engine, request.event_date):
        raise DateUnavailable("That date is no longer available.")

    return booking_quote


def _reservation_metadata(request: BookingPayload, booking_quote: Quote, reservation_id: UUID) -> dict[str, Any]:
    return {
        "purchase_kind": "reservation",
        "reservation_id": str(reservation_id),
        "event_date": request.event_date.isoformat(),
        "start_time": request.time,
        "package": booking_quote.package_id,
        "package_title": booking_quote.package_title,
        "guests": booking_quote.party_size,
        "first_name": _clean(request.first_name),
        "last_name": _clean(request.last_name),
        "email": _clean(request.email),
        "phone": _clean(request.phone),
        "address_line1": _clean(request.address_line1),
        "city": _clean(request.city),
        "state": _clean(request.state),
        "zip": _clean(request.postal_code),
        "diet_notes": (_clean(request.notes) or "")[:METADATA_VALUE_LIMIT],
    }


def submit_booking(engine: Engine, request: BookingPayload, client_ip: Optional[str] = None) -> BookingHandoff:
    """
    Validate a booking, persist it as pending and start a deposit checkout.

    Args:
        engine: SQLAlchemy engine
        request: Booking form payload
        client_ip: Caller address for the anti-abuse check

    Returns:
        BookingHandoff: Reservation id, Stripe session id and redirect URL

    Raises:
        ValidationError: Any rejected input (captcha, contact, service area,
            date, party size, package rules); nothing is written
        DownstreamError: Stripe failed; the pending row stays behind and never
            blocks availability
    """
    try:
        booking_quote = _validate_booking(engine, request, client_ip)
    except ValidationError as e:
        booking_rejections.labels(reason=type(e).__name__).inc()
        logger.info("booking_rejected", reason=type(e).__name__, detail=e.message)
        raise

    start, end = single_day(request.event_date)
    customer_name = " ".join(
        part for part in (_clean(request.first_name), _clean(request.last_name)) if part
    )

    with engine.begin() as conn:
        reservation_id = create_pending_reservation(
            conn,
            {
                "start_date": start,
                "end_date": end,
                "customer_name": customer_name or None,
                "customer_email": _clean(request.email),
                "customer_phone": _clean(request.phone),
                "address_line1": _clean(request.address_line1),
                "city": _clean(request.city),
                "state": _clean(request.state),
                "postal_code": _clean(request.postal_code),
                "package_id": booking_quote.package_id,
                "package_title": booking_quote.package_title,
                "party_size": booking_quote.party_size,
                "start_time": request.time,
                "notes": _clean(request.notes),
                "subtotal_cents": booking_quote.subtotal_cents,
                "deposit_cents": booking_quote.deposit_cents,
                "balance_cents": booking_quote.balance_cents,
                "addon_cents": booking_quote.addon_cents,
            },
        )

    day = request.event_date.isoformat()
    label = f"{booking_quote.package_title} ({booking_quote.party_size} guests, {day} {request.time})"
    try:
        handoff = create_checkout(
            amount_cents=booking_quote.deposit_cents,
            product_name=f"Deposit: {label}",
            description=f"Remaining balance of {booking_quote.balance_cents / 100:.2f} is due after the deposit.",
            metadata=_reservation_metadata(request, booking_quote, reservation_id),
            customer_email=_clean(request.email),
        )
    except DownstreamError:
        checkouts_created.labels(purchase_kind="reservation", status="failure").inc()
        logger.warning("reservation_left_pending", reservation_id=str(reservation_id))
        raise

    with engine.begin() as conn:
        attach_payment_correlation(conn, reservation_id, handoff.payment_id)

    checkouts_created.labels(purchase_kind="reservation", status="success").inc()
    logger.info(
        "booking_submitted",
        reservation_id=str(reservation_id),
        payment_id=handoff.payment_id,
        event_date=day,
        deposit_cents=booking_quote.deposit_cents,
    )
    return BookingHandoff(
        reservation_id=reservation_id,
        payment_id=handoff.payment_id,
        redirect_url=handoff.redirect_url,
        quote=booking_quote,
    )


def gift_card_amount_cents(amount: float) -> int:
    """
    Validate a gift card face value in dollars and return cents.

    Raises:
        ValidationError: Not a whole dollar amount within the allowed range
    """
    dollars = Decimal(str(amount))
    if dollars != dollars.to_integral_value():
        raise ValidationError("Gift card amount must be a whole dollar amount.")
    if not GIFT_CARD_MIN_DOLLARS <= dollars <= GIFT_CARD_MAX_DOLLARS:
        raise ValidationError(
            f"Gift card amount must be between ${GIFT_CARD_MIN_DOLLARS} and ${GIFT_CARD_MAX_DOLLARS:,}."
        )
    return int(dollars) * 100


def start_gift_card_checkout(request: GiftCardCheckoutPayload) -> CheckoutHandoff:
    """
    Start a checkout for a gift card. The card itself is minted on payment.

    Raises:
        ValidationError: Bad amount or missing buyer contact
        DownstreamError: Stripe failed
    """
    amount_cents = gift_card_amount_cents(request.amount)
    buyer_name = _require(request.buyer_name, "Buyer name is required.")
    buyer_email = _require(request.buyer_email, "Buyer email is required.")

    metadata = {
        "purchase_kind": "gift_card",
        "amount_cents": amount_cents,
        "buyer_name": buyer_name,
        "buyer_email": buyer_email,
        "recipient_name": _clean(request.recipient_name),
        "recipient_email": _clean(request.recipient_email),
        "message": (_clean(request.message) or "")[:METADATA_VALUE_LIMIT],
    }
    try:
        handoff = create_checkout(
            amount_cents=amount_cents,
            product_name=f"Gift Card ${amount_cents // 100:,}",
            metadata=metadata,
            customer_email=buyer_email,
            success_path="/gift-card-success",
            cancel_path="/gift-cards#cancel",
        )
    except DownstreamError:
        checkouts_created.labels(purchase_kind="gift_card", status="failure").inc()
        raise

    checkouts_created.labels(purchase_kind="gift_card", status="success").inc()
    logger.info("gift_card_checkout_started", payment_id=handoff.payment_id, amount_cents=amount_cents)
    return handoff


def start_popup_checkout(engine: Engine, event_id: str, request: PopupCheckoutPayload) -> CheckoutHandoff:
    """
    Start a checkout for seats at a pop-up event.

    The seat check here is advisory; the seat ledger clamps on payment.

    Raises:
        EventNotFound: Unknown or hidden event
        ValidationError: Quantity outside the per-order bounds or above remaining seats
        DownstreamError: Stripe failed
    """
    with engine.connect() as conn:
        event = get_popup_event(conn, event_id)

    if not event or event["hidden"]:
        raise EventNotFound(f"Pop-up event {event_id!r} not found")

    quantity = request.quantity
    if not event["min_per_order"] <= quantity <= event["max_per_order"]:
        raise ValidationError(
            f"Quantity must be between {event['min_per_order']} and {event['max_per_order']}."
        )
    remaining = seats_remaining(event)
    if quantity > remaining:
        raise ValidationError(
            "This event is sold out." if remaining == 0 else f"Only {remaining} seats remaining."
        )
    if event["price_cents"] < 50:
        raise ValidationError("This event is not available for online checkout.")

    metadata = {
        "purchase_kind": "popup_event",
        "event_id": event_id,
        "quantity": quantity,
        "name": _clean(request.name),
        "email": _clean(request.email),
    }
    try:
        handoff = create_checkout(
            amount_cents=event["price_cents"],
            quantity=quantity,
            product_name=event["title"],
            description=event["event_date"].isoformat() if event.get("event_date") else None,
            metadata=metadata,
            customer_email=_clean(request.email),
            success_path="/popups/success",
            cancel_path=f"/popups/{event_id}#cancel",
        )
    except DownstreamError:
        checkouts_created.labels(purchase_kind="popup_event", status="failure").inc()
        raise

    checkouts_created.labels(purchase_kind="popup_event", status="success").inc()
    logger.info(
        "popup_checkout_started",
        payment_id=handoff.payment_id,
        event_id=event_id,
        quantity=quantity,
    )
    return handoff
