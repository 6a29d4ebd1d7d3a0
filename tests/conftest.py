"""
Shared fixtures: an in-memory SQLite database and an app client bound to it.

Config is read at import time, so the environment is filled in before any
chef_bookings module is imported.
"""

from __future__ import annotations

import hashlib
import hmac
import os
import time
import uuid
from datetime import date, timedelta
from typing import Any, Callable, Generator

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ALLOWED_ORIGINS", "*")
os.environ.setdefault("ADMIN_KEY", "test-admin-key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("LOG_LEVEL", "INFO")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from chef_bookings.config import SCHEMA  # noqa: E402
from chef_bookings.db.writers.reservations import (  # noqa: E402
    attach_payment_correlation,
    create_pending_reservation,
)
from chef_bookings.dependencies import get_db_engine  # noqa: E402
from chef_bookings.main import app  # noqa: E402
from chef_bookings.models import blackouts, gift_cards, popup_events, reservations  # noqa: E402, F401
from chef_bookings.models.base import Base  # noqa: E402
from chef_bookings.utils.datetime import single_day, utc_today  # noqa: E402

ADMIN_HEADERS = {"x-admin-key": os.environ["ADMIN_KEY"]}


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """
    Fresh in-memory database per test, with the schema name translated away.
    """
    base_engine = create_engine(
        "sqlite://",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    test_engine = base_engine.execution_options(schema_translate_map={SCHEMA: None})
    Base.metadata.create_all(test_engine)

    yield test_engine

    base_engine.dispose()


@pytest.fixture
def client(db_engine: Engine) -> Generator[TestClient, None, None]:
    """FastAPI test client whose routes use the in-memory database."""
    app.dependency_overrides[get_db_engine] = lambda: db_engine
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return dict(ADMIN_HEADERS)


@pytest.fixture
def future_day() -> date:
    """A day comfortably in the future so date checks never depend on today."""
    return utc_today() + timedelta(days=60)


@pytest.fixture
def pending_reservation(db_engine: Engine) -> Callable[..., uuid.UUID]:
    """
    Factory inserting a pending online reservation, optionally with its session id.
    """

    def _create(day: date, payment_id: str | None = None, **fields: Any) -> uuid.UUID:
        start, end = single_day(day)
        with db_engine.begin() as conn:
            reservation_id = create_pending_reservation(
                conn,
                {
                    "start_date": start,
                    "end_date": end,
                    "customer_name": "Ada Lovelace",
                    "customer_email": "ada@example.com",
                    "package_id": "tasting",
                    "package_title": "Tasting Menu",
                    "party_size": 6,
                    "start_time": "18:00",
                    "subtotal_cents": 120000,
                    "deposit_cents": 36000,
                    "balance_cents": 84000,
                    **fields,
                },
            )
            if payment_id:
                attach_payment_correlation(conn, reservation_id, payment_id)
        return reservation_id

    return _create


@pytest.fixture
def sign_stripe_payload() -> Callable[..., str]:
    """
    Build a ``Stripe-Signature`` header for a raw body, the way Stripe signs it.
    """

    def _sign(payload: str, secret: str | None = None, timestamp: int | None = None) -> str:
        secret = secret if secret is not None else os.environ["STRIPE_WEBHOOK_SECRET"]
        ts = timestamp if timestamp is not None else int(time.time())
        signature = hmac.new(
            secret.encode("utf-8"), f"{ts}.{payload}".encode("utf-8"), hashlib.sha256
        ).hexdigest()
        return f"t={ts},v1={signature}"

    return _sign


@pytest.fixture
def checkout_event() -> Callable[..., dict[str, Any]]:
    """Factory for a ``checkout.session.*`` event wrapping one session."""

    def _event(
        session_id: str,
        metadata: dict[str, Any],
        event_type: str = "checkout.session.completed",
        payment_status: str = "paid",
        **session_fields: Any,
    ) -> dict[str, Any]:
        return {
            "id": f"evt_{session_id}",
            "type": event_type,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "payment_status": payment_status,
                    "metadata": {key: str(value) for key, value in metadata.items()},
                    **session_fields,
                }
            },
        }

    return _event
