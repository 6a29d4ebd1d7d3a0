"""
Unit tests for transactional email rendering and delivery.
"""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import pytest
import resend
from prometheus_client import REGISTRY

from chef_bookings.errors import DownstreamError
from chef_bookings.services.notifications import (
    confirmation_code,
    dispatch,
    format_usd,
    notify_gift_card_issued,
    notify_refund_required,
    notify_reservation_confirmed,
    send_email,
)


def _notification_count(kind: str, status: str) -> float:
    value = REGISTRY.get_sample_value(
        "chef_bookings_notifications_total", {"kind": kind, "status": status}
    )
    return value or 0.0


@pytest.mark.unit
def test_confirmation_code_uses_last_eight_alphanumerics():
    assert confirmation_code("cs_test_a1B2c3D4e5") == "B2C3D4E5"
    assert confirmation_code(None) == ""


@pytest.mark.unit
def test_format_usd():
    assert format_usd(36000) == "$360.00"
    assert format_usd(123456) == "$1,234.56"
    assert format_usd(None) == "$0.00"


@pytest.mark.unit
def test_send_email_skips_without_api_key():
    with (
        patch("chef_bookings.services.notifications.RESEND_API_KEY", ""),
        patch.object(resend.Emails, "send") as mock_send,
    ):
        assert send_email("guest@example.com", "Hi", "<p>Hi</p>") is False
        mock_send.assert_not_called()


@pytest.mark.unit
def test_send_email_skips_without_recipients():
    with (
        patch("chef_bookings.services.notifications.RESEND_API_KEY", "re_test"),
        patch.object(resend.Emails, "send") as mock_send,
    ):
        assert send_email([None, ""], "Hi", "<p>Hi</p>") is False
        mock_send.assert_not_called()


@pytest.mark.unit
def test_send_email_deduplicates_recipients():
    with (
        patch("chef_bookings.services.notifications.RESEND_API_KEY", "re_test"),
        patch("chef_bookings.services.notifications.REPLY_TO", "chef@example.com"),
        patch.object(resend.Emails, "send", return_value={"id": "email_1"}) as mock_send,
    ):
        assert send_email(["a@example.com", None, "a@example.com", "b@example.com"], "Hi", "<p>Hi</p>")

    params = mock_send.call_args.args[0]
    assert params["to"] == ["a@example.com", "b@example.com"]
    assert params["subject"] == "Hi"
    assert params["reply_to"] == "chef@example.com"


@pytest.mark.unit
def test_send_email_wraps_provider_errors():
    with (
        patch("chef_bookings.services.notifications.RESEND_API_KEY", "re_test"),
        patch.object(resend.Emails, "send", side_effect=RuntimeError("rate limited")),
    ):
        with pytest.raises(DownstreamError):
            send_email("a@example.com", "Hi", "<p>Hi</p>")


@pytest.mark.unit
def test_reservation_email_escapes_customer_input():
    reservation = {
        "customer_name": "<script>alert(1)</script>",
        "customer_email": "guest@example.com",
        "package_title": "Tasting Menu",
        "start_date": date(2026, 12, 12),
        "start_time": "19:00",
        "party_size": 6,
        "deposit_cents": 36000,
    }
    with (
        patch("chef_bookings.services.notifications.ADMIN_EMAIL", "chef@example.com"),
        patch("chef_bookings.services.notifications.send_email", return_value=True) as mock_send,
    ):
        assert notify_reservation_confirmed(reservation, "cs_test_a1B2c3D4e5")

    to, subject, body = mock_send.call_args.args
    assert to == ["guest@example.com", "chef@example.com"]
    assert "2026-12-12" in subject
    assert "<script>" not in body
    assert "&lt;script&gt;" in body
    assert "$360.00" in body
    assert "B2C3D4E5" in body


@pytest.mark.unit
def test_gift_card_email_includes_code_and_recipient():
    card = {
        "code": "GIFT-ABCD-EFGH",
        "face_value_original_cents": 10000,
        "buyer_name": "Sam",
        "buyer_email": "sam@example.com",
        "recipient_name": "Alex",
        "recipient_email": "alex@example.com",
        "message": "Happy birthday",
        "payment_correlation_id": "cs_test_gift",
    }
    with (
        patch("chef_bookings.services.notifications.ADMIN_EMAIL", ""),
        patch("chef_bookings.services.notifications.send_email", return_value=True) as mock_send,
    ):
        notify_gift_card_issued(card)

    to, subject, body = mock_send.call_args.args
    assert to == ["sam@example.com", "alex@example.com", ""]
    assert "$100.00" in subject
    assert "GIFT-ABCD-EFGH" in body
    assert "Alex" in body


@pytest.mark.unit
def test_refund_alert_goes_to_admin_with_details():
    with (
        patch("chef_bookings.services.notifications.ADMIN_EMAIL", "chef@example.com"),
        patch("chef_bookings.services.notifications.send_email", return_value=True) as mock_send,
    ):
        notify_refund_required("reservation", "cs_test_123", "slot_unavailable", event_date="2026-12-12")

    to, subject, body = mock_send.call_args.args
    assert to == "chef@example.com"
    assert subject.startswith("Refund required: reservation")
    assert "slot_unavailable" in body
    assert "event_date: 2026-12-12" in body


@pytest.mark.unit
def test_dispatch_swallows_failures_and_counts_them():
    def notify_explode() -> bool:
        raise DownstreamError("provider down")

    before = _notification_count("explode", "failed")
    dispatch(notify_explode)

    assert _notification_count("explode", "failed") == before + 1


@pytest.mark.unit
def test_dispatch_counts_skipped_sends():
    def notify_quiet(flag: bool) -> bool:
        return flag

    before = _notification_count("quiet", "skipped")
    dispatch(notify_quiet, False)

    assert _notification_count("quiet", "skipped") == before + 1
