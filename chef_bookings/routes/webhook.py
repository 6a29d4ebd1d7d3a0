"""Stripe webhook receiver route."""

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool

from chef_bookings.config import STRIPE_WEBHOOK_SECRET
from chef_bookings.dependencies import get_db_engine
from chef_bookings.errors import InvalidSignature
from chef_bookings.metrics import webhook_events
from chef_bookings.services.reconciler import reconcile_event
from chef_bookings.stripe_api.signature import verify_webhook

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/stripe/webhook")
async def receive_stripe_webhook(
    request: Request,
    engine: Engine = Depends(get_db_engine),
) -> JSONResponse:
    """
    Handle incoming Stripe webhook events.

    The signature is checked against the raw body before anything is parsed.
    Handled types:
    - checkout.session.completed (settled payments only)
    - checkout.session.async_payment_succeeded

    Any other verified event is acknowledged and ignored. A processing failure
    answers 500 so Stripe redelivers; every write is idempotent.

    Args:
        request: FastAPI request carrying the raw Stripe payload
        engine: Database engine

    Returns:
        JSONResponse: Acknowledgment response
    """
    payload = await request.body()

    try:
        event = verify_webhook(payload, request.headers.get("stripe-signature"), STRIPE_WEBHOOK_SECRET)
    except InvalidSignature as e:
        webhook_events.labels(event_type="unknown", status="invalid_signature").inc()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": f"Webhook Error: {e.message}"},
        )

    event_type = event.get("type") or "unknown"
    logger.info("webhook_received", event_type=event_type, event_id=event.get("id"))

    try:
        outcome = await run_in_threadpool(reconcile_event, engine, event)
    except Exception as e:
        webhook_events.labels(event_type=event_type, status="failed").inc()
        logger.exception(
            "webhook_processing_failed",
            event_type=event_type,
            event_id=event.get("id"),
            error=str(e),
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )

    webhook_events.labels(
        event_type=event_type,
        status="ignored" if outcome.action == "ignored" else "processed",
    ).inc()
    return JSONResponse(content={"received": True, **outcome.to_dict()})
