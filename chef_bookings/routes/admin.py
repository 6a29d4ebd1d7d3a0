import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.engine import Engine

from chef_bookings.config import RESOURCE_CAPACITY_PER_DAY
from chef_bookings.db.readers.blackouts import list_blackouts_for_month
from chef_bookings.db.readers.gift_cards import list_gift_cards_for_month
from chef_bookings.db.readers.popup_events import list_popup_events
from chef_bookings.db.readers.reservations import list_reservations_for_month
from chef_bookings.db.writers.blackouts import add_blackout, bulk_add_blackouts, delete_blackout
from chef_bookings.db.writers.gift_cards import redeem_gift_card
from chef_bookings.db.writers.popup_events import (
    adjust_seats,
    create_popup_event,
    delete_popup_event,
    update_popup_event,
)
from chef_bookings.db.writers.reservations import (
    cancel_reservation,
    create_manual_reservation,
    delete_reservation,
)
from chef_bookings.dependencies import get_db_engine, require_admin_key
from chef_bookings.routes._helpers import admin_errors
from chef_bookings.schemas.admin import (
    BlackoutBulkPayload,
    BlackoutCreatePayload,
    ManualBookingPayload,
    PopupEventCreatePayload,
    PopupEventUpdatePayload,
    SeatAdjustmentPayload,
)
from chef_bookings.services.availability import month_range

logger = structlog.get_logger(__name__)
router = APIRouter(dependencies=[Depends(require_admin_key)])


# =============================================================================
# Blackouts
# =============================================================================


@router.get("/blackouts")
def list_blackouts(
    year: int = Query(...),
    month: int = Query(...),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    month_range(year, month)
    with admin_errors("blackouts_list", year=year, month=month):
        with engine.connect() as conn:
            return list_blackouts_for_month(conn, year, month)


@router.post("/blackouts", status_code=status.HTTP_201_CREATED)
def create_blackout(
    payload: BlackoutCreatePayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, Any]:
    with admin_errors("blackout_create", day=payload.day.isoformat()):
        with engine.begin() as conn:
            return add_blackout(conn, payload.day, payload.reason)


@router.post("/blackouts/bulk")
def create_blackouts_bulk(
    payload: BlackoutBulkPayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, int]:
    """
    Upsert up to 365 single-day blackouts at once.

    Returns:
        dict: ``{"inserted": n, "updated": m}``
    """
    with admin_errors("blackouts_bulk_create", count=len(payload.dates)):
        return bulk_add_blackouts(engine, payload.dates, payload.reason)


@router.delete("/blackouts/{blackout_id}")
def remove_blackout(blackout_id: int, engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
    with admin_errors("blackout_delete", blackout_id=blackout_id):
        with engine.begin() as conn:
            delete_blackout(conn, blackout_id)
    return {"message": f"Blackout {blackout_id} deleted"}


# =============================================================================
# Manual bookings
# =============================================================================


@router.get("/bookings")
def list_bookings(
    year: int = Query(...),
    month: int = Query(...),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    month_range(year, month)
    with admin_errors("bookings_list", year=year, month=month):
        with engine.connect() as conn:
            return list_reservations_for_month(conn, year, month)


@router.post("/bookings", status_code=status.HTTP_201_CREATED)
def create_booking(
    payload: ManualBookingPayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, str]:
    """
    Record an offline booking as confirmed. Fails with 409 when the day is full.
    """
    with admin_errors("manual_booking_create", day=payload.day.isoformat()):
        with engine.begin() as conn:
            reservation_id = create_manual_reservation(
                conn,
                payload.day,
                RESOURCE_CAPACITY_PER_DAY,
                customer_name=payload.name,
                customer_email=payload.email,
                notes=payload.notes,
            )
    return {"id": str(reservation_id)}


@router.post("/bookings/{reservation_id}/cancel")
def cancel_booking(
    reservation_id: uuid.UUID, engine: Engine = Depends(get_db_engine)
) -> dict[str, str]:
    with admin_errors("booking_cancel", reservation_id=str(reservation_id)):
        with engine.begin() as conn:
            cancel_reservation(conn, reservation_id)
    return {"message": f"Reservation {reservation_id} canceled"}


@router.delete("/bookings/{reservation_id}")
def remove_booking(
    reservation_id: uuid.UUID, engine: Engine = Depends(get_db_engine)
) -> dict[str, str]:
    with admin_errors("booking_delete", reservation_id=str(reservation_id)):
        with engine.begin() as conn:
            delete_reservation(conn, reservation_id)
    return {"message": f"Reservation {reservation_id} deleted"}


# =============================================================================
# Gift cards
# =============================================================================


@router.get("/gift-cards")
def list_gift_cards(
    year: int = Query(...),
    month: int = Query(...),
    engine: Engine = Depends(get_db_engine),
) -> list[dict[str, Any]]:
    month_range(year, month)
    with admin_errors("gift_cards_list", year=year, month=month):
        with engine.connect() as conn:
            return list_gift_cards_for_month(conn, year, month)


@router.post("/gift-cards/{gift_card_id}/redeem")
def redeem(gift_card_id: int, engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
    with admin_errors("gift_card_redeem", gift_card_id=gift_card_id):
        with engine.begin() as conn:
            redeem_gift_card(conn, gift_card_id)
    return {"message": f"Gift card {gift_card_id} redeemed"}


# =============================================================================
# Pop-up events
# =============================================================================


@router.get("/popups")
def list_all_popups(engine: Engine = Depends(get_db_engine)) -> list[dict[str, Any]]:
    with engine.connect() as conn:
        return list_popup_events(conn, include_hidden=True)


@router.post("/popups", status_code=status.HTTP_201_CREATED)
def create_popup(
    payload: PopupEventCreatePayload, engine: Engine = Depends(get_db_engine)
) -> dict[str, str]:
    data = payload.model_dump(exclude={"id"})
    with admin_errors("popup_event_create", event_id=payload.id):
        with engine.begin() as conn:
            create_popup_event(conn, payload.id, data)
    return {"id": payload.id}


@router.patch("/popups/{event_id}")
def update_popup(
    event_id: str,
    payload: PopupEventUpdatePayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    update_data = payload.model_dump(exclude_unset=True)
    with admin_errors("popup_event_update", event_id=event_id):
        with engine.begin() as conn:
            return update_popup_event(conn, event_id, update_data)


@router.delete("/popups/{event_id}")
def remove_popup(event_id: str, engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
    with admin_errors("popup_event_delete", event_id=event_id):
        with engine.begin() as conn:
            delete_popup_event(conn, event_id)
    return {"message": f"Pop-up event {event_id} deleted"}


@router.post("/popups/{event_id}/seats")
def adjust_popup_seats(
    event_id: str,
    payload: SeatAdjustmentPayload,
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    with admin_errors("popup_seats_adjust", event_id=event_id, delta=payload.delta):
        with engine.begin() as conn:
            event = adjust_seats(conn, event_id, payload.delta)
    return {"id": event_id, "sold": event["sold"], "capacity": event["capacity"]}
