"""
Integration tests for pop-up events and the seat ledger.
"""

from __future__ import annotations

import pytest
from sqlalchemy.engine import Engine

from chef_bookings.db.readers.popup_events import get_popup_event, list_popup_events, seats_remaining
from chef_bookings.db.writers.popup_events import (
    MAX_SEAT_ADJUSTMENT,
    adjust_seats,
    create_popup_event,
    delete_popup_event,
    record_purchase,
    record_unmatched_payment,
    update_popup_event,
)
from chef_bookings.errors import ConflictError, EventNotFound, ValidationError


@pytest.fixture
def popup(db_engine: Engine) -> str:
    with db_engine.begin() as conn:
        create_popup_event(
            conn,
            "pasta-bk",
            {"title": "Fresh Pasta Class", "capacity": 10, "price_cents": 9500, "max_per_order": 4},
        )
    return "pasta-bk"


@pytest.mark.integration
def test_new_event_starts_with_no_seats_sold(db_engine: Engine, popup: str):
    with db_engine.connect() as conn:
        event = get_popup_event(conn, popup)

    assert event["sold"] == 0
    assert event["hidden"] is False
    assert event["min_per_order"] == 1
    assert seats_remaining(event) == 10


@pytest.mark.integration
def test_creating_existing_event_conflicts(db_engine: Engine, popup: str):
    with pytest.raises(ConflictError):
        with db_engine.begin() as conn:
            create_popup_event(conn, popup, {"title": "Again", "capacity": 5})


@pytest.mark.integration
def test_create_rejects_inverted_order_bounds(db_engine: Engine):
    with pytest.raises(ValidationError):
        with db_engine.begin() as conn:
            create_popup_event(conn, "bad", {"title": "Bad", "capacity": 5, "min_per_order": 3, "max_per_order": 2})


@pytest.mark.integration
@pytest.mark.parametrize("delta, expected", [(4, 4), (25, 10), (-3, 0)])
def test_adjust_seats_clamps_to_capacity_range(db_engine: Engine, popup: str, delta: int, expected: int):
    with db_engine.begin() as conn:
        event = adjust_seats(conn, popup, delta)

    assert event["sold"] == expected
    with db_engine.connect() as conn:
        assert get_popup_event(conn, popup)["sold"] == expected


@pytest.mark.integration
def test_adjust_seats_rejects_huge_delta(db_engine: Engine, popup: str):
    with pytest.raises(ValidationError):
        with db_engine.begin() as conn:
            adjust_seats(conn, popup, MAX_SEAT_ADJUSTMENT + 1)


@pytest.mark.integration
def test_adjust_seats_for_missing_event(db_engine: Engine):
    with pytest.raises(EventNotFound):
        with db_engine.begin() as conn:
            adjust_seats(conn, "nope", 1)


@pytest.mark.integration
def test_record_purchase_is_idempotent_per_payment(db_engine: Engine, popup: str):
    with db_engine.begin() as conn:
        first = record_purchase(conn, popup, "cs_test_1", 3)
    with db_engine.begin() as conn:
        again = record_purchase(conn, popup, "cs_test_1", 3)
    with db_engine.begin() as conn:
        other = record_purchase(conn, popup, "cs_test_2", 2)

    assert (first.recorded, first.duplicate, first.clamped) == (3, False, False)
    assert again.duplicate is True
    assert other.recorded == 2
    with db_engine.connect() as conn:
        assert get_popup_event(conn, popup)["sold"] == 5


@pytest.mark.integration
def test_record_purchase_never_exceeds_capacity(db_engine: Engine, popup: str):
    with db_engine.begin() as conn:
        adjust_seats(conn, popup, 9)
    with db_engine.begin() as conn:
        record = record_purchase(conn, popup, "cs_test_3", 3)

    assert record.recorded == 1
    assert record.clamped is True
    with db_engine.connect() as conn:
        assert get_popup_event(conn, popup)["sold"] == 10


@pytest.mark.integration
def test_record_purchase_rejects_non_positive_quantity(db_engine: Engine, popup: str):
    with pytest.raises(ValidationError):
        with db_engine.begin() as conn:
            record_purchase(conn, popup, "cs_test_0", 0)


@pytest.mark.integration
def test_update_cannot_drop_capacity_below_sold(db_engine: Engine, popup: str):
    with db_engine.begin() as conn:
        adjust_seats(conn, popup, 6)

    with pytest.raises(ValidationError):
        with db_engine.begin() as conn:
            update_popup_event(conn, popup, {"capacity": 5})

    with db_engine.begin() as conn:
        merged = update_popup_event(conn, popup, {"capacity": 6, "title": "Pasta, Again"})
    assert merged["capacity"] == 6
    assert merged["sold"] == 6


@pytest.mark.integration
@pytest.mark.parametrize("field", ["title", "capacity", "price_cents", "hidden"])
def test_update_refuses_to_null_required_fields(db_engine: Engine, popup: str, field: str):
    with pytest.raises(ValidationError, match=field):
        with db_engine.begin() as conn:
            update_popup_event(conn, popup, {field: None})

    with db_engine.connect() as conn:
        assert get_popup_event(conn, popup)["title"] == "Fresh Pasta Class"


@pytest.mark.integration
def test_update_may_clear_optional_fields(db_engine: Engine, popup: str):
    with db_engine.begin() as conn:
        update_popup_event(conn, popup, {"location": "Red Hook"})
        merged = update_popup_event(conn, popup, {"location": None})

    assert merged["location"] is None


@pytest.mark.integration
def test_unmatched_payment_is_recorded_once(db_engine: Engine):
    with db_engine.begin() as conn:
        first = record_unmatched_payment(conn, "gone", "cs_test_gone", 2)
        again = record_unmatched_payment(conn, "gone", "cs_test_gone", 2)

    assert first is True
    assert again is False


@pytest.mark.integration
def test_hidden_events_are_listed_only_for_admins(db_engine: Engine, popup: str):
    with db_engine.begin() as conn:
        update_popup_event(conn, popup, {"hidden": True})

    with db_engine.connect() as conn:
        assert list_popup_events(conn) == []
        assert [event["id"] for event in list_popup_events(conn, include_hidden=True)] == [popup]


@pytest.mark.integration
def test_delete_removes_event_and_ledger(db_engine: Engine, popup: str):
    with db_engine.begin() as conn:
        record_purchase(conn, popup, "cs_test_1", 1)
    with db_engine.begin() as conn:
        delete_popup_event(conn, popup)

    with db_engine.connect() as conn:
        assert get_popup_event(conn, popup) is None
    with pytest.raises(EventNotFound):
        with db_engine.begin() as conn:
            delete_popup_event(conn, popup)
