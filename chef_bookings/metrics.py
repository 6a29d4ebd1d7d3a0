"""
Prometheus metrics for checkout handoffs, payment reconciliation and notifications.

Metrics are exposed via the /metrics endpoint for scraping by Prometheus.

Example:
    >>> from chef_bookings.metrics import checkouts_created, stripe_latency
    >>> with stripe_latency.labels(operation="checkout_create").time():
    ...     session = stripe.checkout.Session.create(...)
    >>> checkouts_created.labels(purchase_kind="reservation", status="success").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Checkout Metrics
# =============================================================================

checkouts_created = Counter(
    "chef_bookings_checkouts_total",
    "Total checkout handoffs requested from Stripe",
    ["purchase_kind", "status"],
)
"""
Counter for checkout handoffs.

Labels:
    purchase_kind: reservation, gift_card or popup_event
    status: success or failure
"""

booking_rejections = Counter(
    "chef_bookings_booking_rejections_total",
    "Booking requests rejected before any payment handoff",
    ["reason"],
)
"""
Counter for rejected booking submissions.

Labels:
    reason: Exception class name (e.g. CaptchaFailed, DateUnavailable)
"""

# =============================================================================
# Webhook / Reconciliation Metrics
# =============================================================================

webhook_events = Counter(
    "chef_bookings_webhook_events_total",
    "Total Stripe webhook deliveries received",
    ["event_type", "status"],
)
"""
Counter for webhook deliveries.

Labels:
    event_type: Stripe event type (e.g. checkout.session.completed)
    status: processed, ignored, invalid_signature or failed
"""

reconcile_outcomes = Counter(
    "chef_bookings_reconcile_outcomes_total",
    "Reconciliation results per purchase kind",
    ["purchase_kind", "outcome"],
)
"""
Counter for reconciliation outcomes.

Labels:
    purchase_kind: reservation, gift_card or popup_event
    outcome: confirmed, duplicate, requires_refund, issued, recorded, clamped, ignored
"""

# =============================================================================
# External Call Metrics
# =============================================================================

stripe_latency = Histogram(
    "chef_bookings_stripe_latency_seconds",
    "Stripe API call latency in seconds",
    ["operation"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf")),
)
"""
Histogram for Stripe API latency.

Labels:
    operation: checkout_create or session_retrieve

Buckets: 0.1s, 0.25s, 0.5s, 1s, 2.5s, 5s, 10s, +Inf
"""

notifications_sent = Counter(
    "chef_bookings_notifications_total",
    "Transactional emails attempted",
    ["kind", "status"],
)
"""
Counter for notification emails.

Labels:
    kind: reservation_confirmed, gift_card_issued, popup_seats, refund_required
    status: sent, skipped or failed
"""
