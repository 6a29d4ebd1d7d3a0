"""
Internal helper functions for route handlers.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from fastapi import HTTPException, Request, status
from sqlalchemy.exc import IntegrityError

from chef_bookings.db.readers.popup_events import seats_remaining
from chef_bookings.errors import BookingError, ConflictError

logger = structlog.get_logger(__name__)


def client_ip(request: Request) -> str | None:
    """
    Best-effort caller address, honouring the first X-Forwarded-For hop.

    Args:
        request: Incoming request

    Returns:
        str | None: Client IP, or None if unknown
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def public_event(event: dict[str, Any]) -> dict[str, Any]:
    """Pop-up event as exposed to the booking UI, with seats remaining."""
    return {
        "id": event["id"],
        "sku": event["sku"],
        "title": event["title"],
        "location": event["location"],
        "event_date": event["event_date"],
        "start_time": event["start_time"],
        "end_time": event["end_time"],
        "price_cents": event["price_cents"],
        "capacity": event["capacity"],
        "remaining": seats_remaining(event),
        "min_per_order": event["min_per_order"],
        "max_per_order": event["max_per_order"],
        "details": event["details"] or {},
    }


@contextmanager
def admin_errors(operation: str, **context: Any) -> Iterator[None]:
    """
    Translate unexpected failures in admin handlers.

    Domain errors and HTTPExceptions pass through; integrity violations become
    a 409; anything else is logged and becomes a 500.
    """
    try:
        yield
    except (HTTPException, BookingError):
        raise
    except IntegrityError as e:
        logger.warning(f"{operation}_conflict", error=str(e.orig), **context)
        raise ConflictError("Change conflicts with an existing record") from e
    except Exception as e:
        logger.exception(f"{operation}_failed", error=str(e), **context)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        ) from e
