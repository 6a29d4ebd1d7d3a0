"""Stripe webhook signature verification."""

import json
from typing import Any, Optional

import stripe
import structlog

from chef_bookings.config import STRIPE_WEBHOOK_TOLERANCE
from chef_bookings.errors import InvalidSignature

logger = structlog.get_logger(__name__)


def verify_webhook(
    payload: bytes,
    sig_header: Optional[str],
    secret: Optional[str],
    tolerance: int = STRIPE_WEBHOOK_TOLERANCE,
) -> dict[str, Any]:
    """
    Verify a Stripe-Signature header against the raw request body.

    Args:
        payload: Raw request body, exactly as received
        sig_header: Value of the ``Stripe-Signature`` header
        secret: Endpoint signing secret (``whsec_...``)
        tolerance: Maximum age of the signed timestamp, in seconds

    Returns:
        dict: The decoded event

    Raises:
        InvalidSignature: Missing secret or header, bad signature, stale
            timestamp, or a body that is not a JSON object
    """
    if not secret:
        logger.error("stripe_webhook_secret_missing")
        raise InvalidSignature("Webhook signing secret is not configured")
    if not sig_header:
        raise InvalidSignature("Missing Stripe-Signature header")

    text = payload.decode("utf-8", errors="replace")
    try:
        stripe.WebhookSignature.verify_header(text, sig_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        logger.warning("stripe_signature_invalid", error=str(e))
        raise InvalidSignature("Invalid webhook signature") from e

    try:
        event = json.loads(text)
    except ValueError as e:
        raise InvalidSignature("Webhook payload is not valid JSON") from e

    if not isinstance(event, dict):
        raise InvalidSignature("Webhook payload is not a JSON object")
    return event
