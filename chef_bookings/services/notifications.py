"""
Transactional email through Resend.

Notifications are best-effort: the reconciler calls them through ``dispatch``
after its transaction has committed, so a failed email never undoes a
confirmation.
"""

import html
import re
from typing import Any, Callable, Iterable, Optional, Union

import resend
import structlog

from chef_bookings.config import ADMIN_EMAIL, FROM_EMAIL, REPLY_TO, RESEND_API_KEY, SITE_URL
from chef_bookings.errors import DownstreamError
from chef_bookings.metrics import notifications_sent

logger = structlog.get_logger(__name__)


def confirmation_code(payment_id: Optional[str]) -> str:
    """Last 8 alphanumerics of the payment id, upper-cased."""
    return re.sub(r"[^A-Za-z0-9]", "", payment_id or "")[-8:].upper()


def format_usd(cents: Optional[int]) -> str:
    return f"${(cents or 0) / 100:,.2f}"


def _recipients(to: Union[str, Iterable[Optional[str]], None]) -> list[str]:
    addresses = [to] if isinstance(to, str) or to is None else list(to)
    seen: list[str] = []
    for address in addresses:
        if address and address not in seen:
            seen.append(address)
    return seen


def send_email(to: Union[str, Iterable[Optional[str]], None], subject: str, html_body: str) -> bool:
    """
    Send one email via Resend.

    Args:
        to: Address or addresses; empty values are dropped
        subject: Subject line
        html_body: HTML body

    Returns:
        bool: True if handed to Resend, False if skipped (no API key or no recipients)

    Raises:
        DownstreamError: If Resend rejects the request
    """
    recipients = _recipients(to)
    if not RESEND_API_KEY:
        logger.warning("email_skipped", reason="resend_not_configured", subject=subject)
        return False
    if not recipients:
        logger.warning("email_skipped", reason="no_recipients", subject=subject)
        return False

    resend.api_key = RESEND_API_KEY
    params: dict[str, Any] = {
        "from": FROM_EMAIL,
        "to": recipients,
        "subject": subject,
        "html": html_body,
    }
    if REPLY_TO:
        params["reply_to"] = REPLY_TO

    try:
        response = resend.Emails.send(params)
    except Exception as e:
        raise DownstreamError(f"Failed to send email: {e}") from e

    logger.info(
        "email_sent",
        subject=subject,
        recipients=len(recipients),
        email_id=response.get("id") if isinstance(response, dict) else None,
    )
    return True


def _page(heading: str, paragraphs: list[str], code: Optional[str] = None) -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    code_block = ""
    if code:
        code_block = (
            '<div style="margin:12px 0;padding:10px 12px;border:1px solid #eee;border-radius:10px">'
            '<div style="font-size:13px;color:#555">Confirmation code</div>'
            f'<div style="font-weight:800;font-size:20px;letter-spacing:1px">{html.escape(code)}</div>'
            "</div>"
        )
    return (
        '<div style="font-family:ui-sans-serif,system-ui;line-height:1.6;max-width:600px;margin:0 auto">'
        f"<h2>{html.escape(heading)}</h2>{body}{code_block}"
        '<p style="color:#555;font-size:13px">Questions? Reply to this email anytime.</p>'
        "</div>"
    )


def notify_reservation_confirmed(reservation: dict[str, Any], payment_id: str) -> bool:
    name = html.escape(reservation.get("customer_name") or "Guest")
    title = html.escape(reservation.get("package_title") or "Private Event")
    day = reservation["start_date"].isoformat()
    start_time = html.escape(reservation.get("start_time") or "18:00")
    guests = reservation.get("party_size")

    paragraphs = [
        f"Hi {name},",
        f"Thanks for reserving a <strong>{title}</strong> on <strong>{day}</strong> at "
        f"<strong>{start_time}</strong>" + (f" for <strong>{guests}</strong> guests." if guests else "."),
    ]
    if reservation.get("deposit_cents"):
        paragraphs.append(f"We've received your deposit: <strong>{format_usd(reservation['deposit_cents'])}</strong>.")
    paragraphs.append("We'll be in touch to plan the menu, timing and kitchen setup.")
    paragraphs.append(f'<a href="{SITE_URL}/booking-success">{SITE_URL}/booking-success</a>')

    return send_email(
        [reservation.get("customer_email"), ADMIN_EMAIL],
        f"Booking confirmed: {day}, {reservation.get('package_title') or 'Private Event'}",
        _page("You're booked!", paragraphs, confirmation_code(payment_id)),
    )


def notify_gift_card_issued(card: dict[str, Any]) -> bool:
    buyer = html.escape(card.get("buyer_name") or "there")
    recipient = html.escape(card.get("recipient_name") or "")
    paragraphs = [
        f"Hi {buyer},",
        f"Your gift card for <strong>{format_usd(card['face_value_original_cents'])}</strong>"
        + (f" for {recipient}" if recipient else "")
        + " is ready.",
        f"Redemption code: <strong>{html.escape(card['code'])}</strong>",
    ]
    if card.get("message"):
        paragraphs.append(f"<em>{html.escape(card['message'])}</em>")

    return send_email(
        [card.get("buyer_email"), card.get("recipient_email"), ADMIN_EMAIL],
        f"Your gift card: {format_usd(card['face_value_original_cents'])}",
        _page("Gift card issued", paragraphs, confirmation_code(card.get("payment_correlation_id"))),
    )


def notify_popup_seats(
    event: dict[str, Any],
    payment_id: str,
    seats: int,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> bool:
    title = html.escape(event.get("title") or event["id"])
    when = event["event_date"].isoformat() if event.get("event_date") else "the scheduled date"
    paragraphs = [
        f"Hi {html.escape(name or 'there')},",
        f"You're confirmed for <strong>{seats}</strong> seat{'s' if seats != 1 else ''} at "
        f"<strong>{title}</strong> on <strong>{when}</strong>.",
    ]
    if event.get("location"):
        paragraphs.append(f"Location: {html.escape(event['location'])}")

    return send_email(
        [email, ADMIN_EMAIL],
        f"Pop-up confirmed: {event.get('title') or event['id']}",
        _page("See you there!", paragraphs, confirmation_code(payment_id)),
    )


def notify_refund_required(purchase_kind: str, payment_id: str, reason: str, **details: Any) -> bool:
    """Alert the admin that a settled payment could not be fulfilled."""
    rows = "".join(
        f"<li>{html.escape(str(key))}: {html.escape(str(value))}</li>" for key, value in details.items()
    )
    paragraphs = [
        f"A paid {html.escape(purchase_kind)} could not be fulfilled and needs a manual refund.",
        f"Reason: <strong>{html.escape(reason)}</strong>",
        f"Stripe session: <code>{html.escape(payment_id)}</code>",
        f"<ul>{rows}</ul>" if rows else "",
    ]
    return send_email(
        ADMIN_EMAIL,
        f"Refund required: {purchase_kind} {confirmation_code(payment_id)}",
        _page("Refund required", paragraphs),
    )


def dispatch(fn: Callable[..., bool], *args: Any, **kwargs: Any) -> None:
    """
    Run a notification, logging and swallowing any failure.
    """
    kind = fn.__name__.removeprefix("notify_")
    try:
        sent = fn(*args, **kwargs)
    except Exception as e:
        notifications_sent.labels(kind=kind, status="failed").inc()
        logger.exception("notification_failed", kind=kind, error=str(e))
        return

    notifications_sent.labels(kind=kind, status="sent" if sent else "skipped").inc()
