from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.engine import Engine

from chef_bookings.db.readers.popup_events import get_popup_event, list_popup_events
from chef_bookings.dependencies import get_db_engine
from chef_bookings.errors import BookingError, EventNotFound
from chef_bookings.routes._helpers import client_ip, public_event
from chef_bookings.schemas.bookings import (
    BookingPayload,
    GiftCardCheckoutPayload,
    PopupCheckoutPayload,
    QuotePayload,
)
from chef_bookings.services.availability import get_blocked_dates
from chef_bookings.services.intake import (
    start_gift_card_checkout,
    start_popup_checkout,
    submit_booking,
)
from chef_bookings.services.pricing import quote

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/availability")
def availability(
    year: int = Query(..., description="Calendar year"),
    month: int = Query(..., description="Calendar month, 1-12"),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, list[str]]:
    """
    Blocked days for a month.

    Returns:
        dict: ``{"booked": ["YYYY-MM-DD", ...]}``
    """
    try:
        return {"booked": get_blocked_dates(engine, year, month)}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("availability_failed", year=year, month=month, error=str(e))
        raise HTTPException(status_code=500, detail="Unable to load availability.")


@router.post("/quote")
def price_quote(payload: QuotePayload) -> dict[str, Any]:
    """Price a package for a party size. Pure computation, nothing is stored."""
    result = quote(
        payload.package_id,
        payload.party_size,
        addons=payload.addons,
        access_code=payload.access_code,
        event_date=payload.event_date,
    )
    return result.to_dict()


@router.post("/book")
def book(
    payload: BookingPayload,
    request: Request,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Submit a booking and return the Stripe Checkout URL for the deposit.

    Args:
        payload: Booking form
        request: Incoming request (client address for reCAPTCHA)
        engine: Database engine

    Returns:
        dict: ``url`` to redirect to, plus the pending reservation id and quote
    """
    try:
        handoff = submit_booking(engine, payload, client_ip(request))
        return {
            "url": handoff.redirect_url,
            "reservation_id": str(handoff.reservation_id),
            "quote": handoff.quote.to_dict(),
        }
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("booking_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Unable to create booking.")


@router.post("/gift-cards/checkout")
def gift_card_checkout(payload: GiftCardCheckoutPayload) -> dict[str, str]:
    try:
        handoff = start_gift_card_checkout(payload)
        return {"url": handoff.redirect_url}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("gift_card_checkout_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/popups")
def popups(engine: Engine = Depends(get_db_engine)) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        events = list_popup_events(conn)
    return [public_event(event) for event in events]


@router.get("/popups/{event_id}")
def popup_detail(event_id: str, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    with engine.connect() as conn:
        event = get_popup_event(conn, event_id)
    if not event or event["hidden"]:
        raise EventNotFound(f"Pop-up event {event_id!r} not found")
    return public_event(event)


@router.post("/popups/{event_id}/checkout")
def popup_checkout(
    event_id: str,
    payload: PopupCheckoutPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, str]:
    try:
        handoff = start_popup_checkout(engine, event_id, payload)
        return {"url": handoff.redirect_url}
    except (HTTPException, BookingError):
        raise
    except Exception as e:
        logger.exception("popup_checkout_failed", event_id=event_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
