"""
Integration tests for payment reconciliation against an in-memory database.
"""

from __future__ import annotations

import re
import uuid
from datetime import date
from typing import Any, Callable
from unittest.mock import patch

import pytest
import structlog
from sqlalchemy import func, select, update
from sqlalchemy.engine import Engine

from chef_bookings.db.readers.popup_events import get_popup_event
from chef_bookings.db.readers.reservations import get_reservation, get_reservation_by_payment
from chef_bookings.db.writers.popup_events import adjust_seats, create_popup_event
from chef_bookings.db.writers.reservations import (
    cancel_reservation,
    confirm_reservation,
    create_manual_reservation,
)
from chef_bookings.db.writers.reservations import claim_days as real_claim_days
from chef_bookings.models.gift_cards import GiftCard
from chef_bookings.models.reservations import DayClaim, Reservation
from chef_bookings.services.availability import get_blocked_dates
from chef_bookings.services.notifications import (
    notify_gift_card_issued,
    notify_popup_seats,
    notify_refund_required,
    notify_reservation_confirmed,
)
from chef_bookings.services.reconciler import reconcile_event, reconcile_session

EventFactory = Callable[..., dict[str, Any]]
DAY = date(2026, 12, 12)


def _claims(engine: Engine, reservation_id: uuid.UUID) -> int:
    with engine.connect() as conn:
        return conn.execute(
            select(func.count()).select_from(DayClaim).where(DayClaim.reservation_id == reservation_id)
        ).scalar_one()


def _reservation_metadata(reservation_id: uuid.UUID | None = None, **extra: Any) -> dict[str, Any]:
    metadata = {"purchase_kind": "reservation", "event_date": DAY.isoformat(), **extra}
    if reservation_id:
        metadata["reservation_id"] = str(reservation_id)
    return metadata


@pytest.fixture
def sent() -> Any:
    """Capture notifications instead of sending them."""
    with patch("chef_bookings.services.reconciler.dispatch") as mock_dispatch:
        yield mock_dispatch


def _dispatched(mock_dispatch: Any) -> list[Callable[..., Any]]:
    return [call.args[0] for call in mock_dispatch.call_args_list]


# =============================================================================
# Reservations
# =============================================================================


@pytest.mark.integration
def test_paid_session_confirms_pending_reservation(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_1")

    outcome = reconcile_event(db_engine, checkout_event("cs_test_1", _reservation_metadata(reservation_id)))

    assert outcome.action == "confirmed"
    assert outcome.record_id == str(reservation_id)
    with db_engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    assert reservation["status"] == "confirmed"
    assert reservation["confirmed_at"] is not None
    assert _claims(db_engine, reservation_id) == 1
    assert get_blocked_dates(db_engine, 2026, 12) == ["2026-12-12"]
    assert _dispatched(sent) == [notify_reservation_confirmed]


@pytest.mark.integration
def test_redelivered_session_is_a_duplicate(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_1")
    event = checkout_event("cs_test_1", _reservation_metadata(reservation_id))

    first = reconcile_event(db_engine, event)
    second = reconcile_event(db_engine, event)

    assert first.action == "confirmed"
    assert second.action == "duplicate"
    assert _claims(db_engine, reservation_id) == 1
    assert _dispatched(sent) == [notify_reservation_confirmed]


@pytest.mark.integration
def test_async_payment_succeeded_confirms_like_completion(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_async")
    pending = checkout_event("cs_test_async", _reservation_metadata(reservation_id), payment_status="unpaid")
    settled = checkout_event(
        "cs_test_async",
        _reservation_metadata(reservation_id),
        event_type="checkout.session.async_payment_succeeded",
    )

    assert reconcile_event(db_engine, pending).action == "ignored"
    with db_engine.connect() as conn:
        assert get_reservation(conn, reservation_id)["status"] == "pending"

    assert reconcile_event(db_engine, settled).action == "confirmed"


@pytest.mark.integration
def test_session_without_pending_row_synthesizes_reservation(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    event = checkout_event(
        "cs_test_orphan",
        _reservation_metadata(
            first_name="Grace",
            last_name="Hopper",
            email="grace@example.com",
            guests=4,
            package="tasting",
            start_time="19:00",
        ),
        amount_total=24000,
    )

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "confirmed"
    with db_engine.connect() as conn:
        reservation = get_reservation_by_payment(conn, "cs_test_orphan")
    assert reservation["status"] == "confirmed"
    assert reservation["start_date"] == DAY
    assert reservation["customer_name"] == "Grace Hopper"
    assert reservation["customer_email"] == "grace@example.com"
    assert reservation["party_size"] == 4
    assert reservation["deposit_cents"] == 24000


@pytest.mark.integration
def test_unknown_reservation_id_falls_back_to_payment_and_date(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    event = checkout_event("cs_test_lost", _reservation_metadata(uuid.uuid4()))

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "confirmed"
    with db_engine.connect() as conn:
        assert get_reservation_by_payment(conn, "cs_test_lost") is not None


@pytest.mark.integration
def test_customer_fields_are_backfilled_from_checkout_details(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_fill", customer_phone=None)
    event = checkout_event(
        "cs_test_fill",
        _reservation_metadata(reservation_id),
        customer_details={"name": "Someone Else", "phone": "+15555550100", "email": "other@example.com"},
    )

    reconcile_event(db_engine, event)

    with db_engine.connect() as conn:
        reservation = get_reservation(conn, reservation_id)
    assert reservation["customer_phone"] == "+15555550100"
    assert reservation["customer_name"] == "Ada Lovelace"  # stored value wins
    assert reservation["customer_email"] == "ada@example.com"


@pytest.mark.integration
def test_second_payer_for_a_full_day_is_flagged_for_refund(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    with db_engine.begin() as conn:
        create_manual_reservation(conn, DAY, capacity=1, customer_name="Walk-in")
    loser_id = pending_reservation(DAY, payment_id="cs_test_late")
    event = checkout_event("cs_test_late", _reservation_metadata(loser_id))

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "requires_refund"
    assert outcome.detail == "slot_unavailable"
    with db_engine.connect() as conn:
        loser = get_reservation(conn, loser_id)
    assert loser["status"] == "pending"
    assert loser["requires_refund"] is True
    assert loser["payment_correlation_id"] == "cs_test_late"
    assert _claims(db_engine, loser_id) == 0
    assert _dispatched(sent) == [notify_refund_required]

    assert reconcile_event(db_engine, event).action == "duplicate"
    assert len(sent.call_args_list) == 1


@pytest.mark.integration
def test_orphan_payment_for_full_day_keeps_a_flagged_row(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    with db_engine.begin() as conn:
        create_manual_reservation(conn, DAY, capacity=1)

    outcome = reconcile_event(db_engine, checkout_event("cs_test_orphan_late", _reservation_metadata()))

    assert outcome.action == "requires_refund"
    with db_engine.connect() as conn:
        row = get_reservation_by_payment(conn, "cs_test_orphan_late")
    assert row["requires_refund"] is True
    assert row["status"] == "pending"


@pytest.mark.integration
def test_payment_for_canceled_reservation_requires_refund(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_cancel")
    with db_engine.begin() as conn:
        cancel_reservation(conn, reservation_id)

    outcome = reconcile_event(db_engine, checkout_event("cs_test_cancel", _reservation_metadata(reservation_id)))

    assert outcome.action == "requires_refund"
    assert outcome.detail == "reservation_canceled"
    assert get_blocked_dates(db_engine, 2026, 12) == []


@pytest.mark.integration
def test_reservation_paid_by_another_session_requires_refund(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_first")
    reconcile_event(db_engine, checkout_event("cs_test_first", _reservation_metadata(reservation_id)))

    second = checkout_event("cs_test_second", _reservation_metadata(reservation_id))
    outcome = reconcile_event(db_engine, second)

    assert outcome.action == "requires_refund"
    assert outcome.detail == "reservation_paid_by_other_payment"
    assert outcome.record_id != str(reservation_id)
    with db_engine.connect() as conn:
        owner = get_reservation(conn, reservation_id)
        extra = get_reservation_by_payment(conn, "cs_test_second")
    assert owner["status"] == "confirmed"
    assert owner["requires_refund"] is False
    assert owner["payment_correlation_id"] == "cs_test_first"
    assert extra["requires_refund"] is True
    assert extra["status"] == "pending"
    assert extra["start_date"] == DAY

    assert reconcile_event(db_engine, second).action == "duplicate"
    assert _dispatched(sent) == [notify_reservation_confirmed, notify_refund_required]


@pytest.mark.integration
def test_reservation_canceled_during_confirmation_rolls_back_claims(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_raced")

    def claim_then_cancel(conn: Any, claimed_id: uuid.UUID, *args: Any) -> None:
        real_claim_days(conn, claimed_id, *args)
        conn.execute(update(Reservation).where(Reservation.id == claimed_id).values(status="canceled"))

    with patch("chef_bookings.services.reconciler.claim_days", side_effect=claim_then_cancel):
        outcome = reconcile_event(db_engine, checkout_event("cs_test_raced", _reservation_metadata(reservation_id)))

    assert outcome.action == "requires_refund"
    assert outcome.detail == "confirmation_rejected"
    assert _claims(db_engine, reservation_id) == 0
    assert get_blocked_dates(db_engine, 2026, 12) == []
    with db_engine.connect() as conn:
        assert get_reservation(conn, reservation_id)["requires_refund"] is True
    assert _dispatched(sent) == [notify_refund_required]


@pytest.mark.integration
def test_delivery_losing_a_confirmation_race_is_a_duplicate(
    db_engine: Engine, pending_reservation: Callable[..., uuid.UUID], checkout_event: EventFactory, sent: Any
):
    reservation_id = pending_reservation(DAY, payment_id="cs_test_twice")

    def claim_while_other_delivery_confirms(conn: Any, claimed_id: uuid.UUID, *args: Any) -> None:
        real_claim_days(conn, claimed_id, *args)
        confirm_reservation(conn, claimed_id, "cs_test_twice")

    with patch("chef_bookings.services.reconciler.claim_days", side_effect=claim_while_other_delivery_confirms):
        outcome = reconcile_event(db_engine, checkout_event("cs_test_twice", _reservation_metadata(reservation_id)))

    assert outcome.action == "duplicate"
    assert _claims(db_engine, reservation_id) == 1
    with db_engine.connect() as conn:
        assert get_reservation(conn, reservation_id)["status"] == "confirmed"
    sent.assert_not_called()


@pytest.mark.integration
def test_reservation_metadata_without_date_or_id_is_ignored(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    outcome = reconcile_event(db_engine, checkout_event("cs_test_bare", {"purchase_kind": "reservation"}))

    assert outcome.action == "ignored"
    sent.assert_not_called()


# =============================================================================
# Event filtering
# =============================================================================


@pytest.mark.integration
def test_unhandled_event_type_is_ignored(db_engine: Engine):
    outcome = reconcile_event(db_engine, {"id": "evt_1", "type": "charge.refunded", "data": {"object": {}}})

    assert outcome.action == "ignored"


@pytest.mark.integration
def test_session_without_id_is_invalid(db_engine: Engine):
    outcome = reconcile_session(db_engine, {"payment_status": "paid", "metadata": {}})

    assert outcome.action == "invalid"


@pytest.mark.integration
def test_malformed_metadata_is_invalid_and_writes_nothing(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    event = checkout_event("cs_test_bad", {"purchase_kind": "popup_event", "event_id": "x", "quantity": "lots"})

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "invalid"
    sent.assert_not_called()


# =============================================================================
# Gift cards
# =============================================================================


@pytest.mark.integration
def test_gift_card_redelivery_mints_exactly_one_card(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    event = checkout_event(
        "cs_test_gift",
        {
            "purchase_kind": "gift_card",
            "amount_cents": 10000,
            "buyer_name": "Sam",
            "buyer_email": "sam@example.com",
            "recipient_name": "Alex",
        },
    )

    first = reconcile_event(db_engine, event)
    second = reconcile_event(db_engine, event)

    assert first.action == "issued"
    assert second.action == "duplicate"
    assert second.record_id == first.record_id

    with db_engine.connect() as conn:
        cards = conn.execute(select(GiftCard)).mappings().all()
    assert len(cards) == 1
    assert re.fullmatch(r"GIFT-[A-Z2-9]{4}-[A-Z2-9]{4}", cards[0]["code"])
    assert cards[0]["face_value_original_cents"] == 10000
    assert cards[0]["face_value_remaining_cents"] == 10000
    assert cards[0]["status"] == "active"
    assert _dispatched(sent) == [notify_gift_card_issued]


# =============================================================================
# Pop-up seats
# =============================================================================


def _popup(engine: Engine, event_id: str, capacity: int, sold: int = 0) -> None:
    with engine.begin() as conn:
        create_popup_event(conn, event_id, {"title": "Pasta Night", "capacity": capacity, "price_cents": 9500})
    if sold:
        with engine.begin() as conn:
            adjust_seats(conn, event_id, sold)


@pytest.mark.integration
def test_popup_purchase_records_seats_once(db_engine: Engine, checkout_event: EventFactory, sent: Any):
    _popup(db_engine, "pasta-bk", capacity=10)
    event = checkout_event("cs_test_seats", {"purchase_kind": "popup_event", "event_id": "pasta-bk", "quantity": 2})

    first = reconcile_event(db_engine, event)
    second = reconcile_event(db_engine, event)

    assert first.action == "recorded"
    assert second.action == "duplicate"
    with db_engine.connect() as conn:
        assert get_popup_event(conn, "pasta-bk")["sold"] == 2
    assert _dispatched(sent) == [notify_popup_seats]


@pytest.mark.integration
def test_popup_oversell_is_clamped_to_capacity(db_engine: Engine, checkout_event: EventFactory, sent: Any):
    """Capacity 10 with 9 sold: a paid order for 3 records 1 seat and alerts for a refund."""
    _popup(db_engine, "pasta-bk", capacity=10, sold=9)
    event = checkout_event("cs_test_over", {"purchase_kind": "popup_event", "event_id": "pasta-bk", "quantity": 3})

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "clamped"
    assert outcome.detail == "1 of 3 seats recorded"
    with db_engine.connect() as conn:
        assert get_popup_event(conn, "pasta-bk")["sold"] == 10
    assert _dispatched(sent) == [notify_popup_seats, notify_refund_required]


@pytest.mark.integration
def test_popup_purchase_for_sold_out_event_records_nothing(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    _popup(db_engine, "pasta-bk", capacity=4, sold=4)
    event = checkout_event("cs_test_full", {"purchase_kind": "popup_event", "event_id": "pasta-bk", "quantity": 1})

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "clamped"
    with db_engine.connect() as conn:
        assert get_popup_event(conn, "pasta-bk")["sold"] == 4
    assert _dispatched(sent) == [notify_refund_required]


@pytest.mark.integration
def test_popup_purchase_for_missing_event_requires_refund(
    db_engine: Engine, checkout_event: EventFactory, sent: Any
):
    event = checkout_event("cs_test_gone", {"purchase_kind": "popup_event", "event_id": "gone", "quantity": 1})

    outcome = reconcile_event(db_engine, event)

    assert outcome.action == "requires_refund"
    assert outcome.detail == "event_not_found"
    assert _dispatched(sent) == [notify_refund_required]

    assert reconcile_event(db_engine, event).action == "duplicate"
    assert _dispatched(sent) == [notify_refund_required]


@pytest.mark.integration
def test_payment_context_is_bound_while_reconciling(db_engine: Engine, checkout_event: EventFactory):
    seen: list[dict[str, Any]] = []

    with patch(
        "chef_bookings.services.reconciler.dispatch",
        side_effect=lambda *args, **kwargs: seen.append(structlog.contextvars.get_contextvars()),
    ):
        reconcile_event(
            db_engine, checkout_event("cs_test_ctx", {"purchase_kind": "gift_card", "amount_cents": 5000})
        )

    assert seen[0]["payment_id"] == "cs_test_ctx"
    assert seen[0]["purchase_kind"] == "gift_card"
    assert "payment_id" not in structlog.contextvars.get_contextvars()
