"""
Domain exceptions for the booking core.

Every exception carries the HTTP status it maps to; main.py registers a single
handler that renders ``{"error": message}`` with that status. Services raise
these and never build HTTP responses themselves.
"""

from __future__ import annotations


class BookingError(Exception):
    """Base class for all booking-domain failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# =============================================================================
# Validation (rejected before any write)
# =============================================================================


class ValidationError(BookingError):
    status_code = 400


class InvalidPartySize(ValidationError):
    pass


class PackageRuleViolation(ValidationError):
    pass


class ServiceAreaError(ValidationError):
    pass


class DateUnavailable(ValidationError):
    pass


class CaptchaFailed(ValidationError):
    pass


# =============================================================================
# Conflicts
# =============================================================================


class ConflictError(BookingError):
    status_code = 409


class SlotUnavailable(ConflictError):
    """Every slot of at least one day in the requested range is already claimed."""


class ReservationUnconfirmable(ConflictError):
    """The reservation changed under a confirmation (canceled or paid by another payment)."""


# =============================================================================
# Authenticity
# =============================================================================


class AuthenticityError(BookingError):
    status_code = 400


class InvalidSignature(AuthenticityError):
    pass


# =============================================================================
# Missing records
# =============================================================================


class NotFoundError(BookingError):
    status_code = 404


class ReservationNotFound(NotFoundError):
    pass


class EventNotFound(NotFoundError):
    pass


class GiftCardNotFound(NotFoundError):
    pass


# =============================================================================
# External collaborators
# =============================================================================


class DownstreamError(BookingError):
    status_code = 502
