"""
Stripe Checkout client.

Creates hosted Checkout Sessions for deposits, gift cards and pop-up seats,
and retrieves sessions for manual replay. Every Stripe failure surfaces as a
``DownstreamError``.
"""

import time
from dataclasses import dataclass
from typing import Any, Optional

import stripe
import structlog

from chef_bookings.config import CURRENCY, SITE_URL, STRIPE_SECRET
from chef_bookings.errors import DownstreamError
from chef_bookings.metrics import stripe_latency

logger = structlog.get_logger(__name__)

SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


@dataclass(frozen=True)
class CheckoutHandoff:
    payment_id: str
    redirect_url: str


def _stringify_metadata(metadata: dict[str, Any]) -> dict[str, str]:
    # Stripe metadata values must be strings
    return {key: "" if value is None else str(value) for key, value in metadata.items()}


def create_checkout(
    amount_cents: int,
    product_name: str,
    metadata: dict[str, Any],
    customer_email: Optional[str] = None,
    success_path: str = "/booking-success",
    cancel_path: str = "/booking-calendar#cancel",
    description: Optional[str] = None,
    quantity: int = 1,
) -> CheckoutHandoff:
    """
    Create a one-off payment Checkout Session.

    Args:
        amount_cents: Unit amount charged, in cents
        product_name: Line item label shown on the Stripe page
        metadata: Opaque values echoed back in the completion webhook
        customer_email: Pre-fills the payer email
        success_path: Path on SITE_URL to return to after payment
        cancel_path: Path on SITE_URL to return to on cancel
        description: Line item description
        quantity: Line item quantity

    Returns:
        CheckoutHandoff: Session id (the payment correlation id) and hosted URL

    Raises:
        DownstreamError: If Stripe is not configured or the call fails
    """
    if not STRIPE_SECRET:
        raise DownstreamError("Payment processor is not configured")

    params: dict[str, Any] = {
        "mode": "payment",
        "line_items": [
            {
                "quantity": quantity,
                "price_data": {
                    "currency": CURRENCY,
                    "unit_amount": amount_cents,
                    "product_data": {
                        "name": product_name,
                        **({"description": description} if description else {}),
                    },
                },
            }
        ],
        "success_url": f"{SITE_URL}{success_path}?session_id={SESSION_ID_PLACEHOLDER}",
        "cancel_url": f"{SITE_URL}{cancel_path}",
        "metadata": _stringify_metadata(metadata),
        "billing_address_collection": "required",
        "phone_number_collection": {"enabled": True},
    }
    if customer_email:
        params["customer_email"] = customer_email

    start_time = time.time()
    try:
        session = stripe.checkout.Session.create(api_key=STRIPE_SECRET, **params)
    except stripe.StripeError as e:
        logger.error(
            "stripe_checkout_failed",
            purchase_kind=metadata.get("purchase_kind"),
            error=getattr(e, "user_message", None) or str(e),
        )
        raise DownstreamError("Unable to start checkout. Please try again.") from e
    finally:
        stripe_latency.labels(operation="checkout_create").observe(time.time() - start_time)

    logger.info(
        "stripe_checkout_created",
        payment_id=session.id,
        purchase_kind=metadata.get("purchase_kind"),
        amount_cents=amount_cents * quantity,
    )
    return CheckoutHandoff(payment_id=session.id, redirect_url=session.url)


def retrieve_session(session_id: str) -> dict[str, Any]:
    """
    Fetch a Checkout Session as a plain dict (for manual replay).

    Raises:
        DownstreamError: If Stripe is not configured or the call fails
    """
    if not STRIPE_SECRET:
        raise DownstreamError("Payment processor is not configured")

    start_time = time.time()
    try:
        session = stripe.checkout.Session.retrieve(session_id, api_key=STRIPE_SECRET)
    except stripe.StripeError as e:
        logger.error("stripe_session_retrieve_failed", session_id=session_id, error=str(e))
        raise DownstreamError(f"Unable to retrieve session {session_id}") from e
    finally:
        stripe_latency.labels(operation="session_retrieve").observe(time.time() - start_time)

    return session.to_dict()
