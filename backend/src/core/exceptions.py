"""
Typed errors raised by the availability and booking services.

API routes translate these into HTTP responses (see ``api.errors``);
scheduler jobs log them and continue.
"""

from typing import Optional


class BookingEngineError(Exception):
    """Base class for all scheduling errors."""

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    default_code = "error"


class ValidationError(BookingEngineError):
    """Malformed request, rejected before touching the datastore."""
    default_code = "validation_error"


class InvalidStatusTransition(ValidationError):
    """Booking is not in a status that allows the requested change."""
    default_code = "invalid_status_transition"


class NotFoundError(BookingEngineError):
    """Referenced doctor, patient, booking or connection does not exist."""
    default_code = "not_found"


class SlotAlreadyTaken(BookingEngineError):
    """
    The requested slot is held by another active booking.

    Callers must re-fetch availability instead of retrying the same slot.
    """
    default_code = "slot_already_taken"

    def __init__(self, message: str = "This time slot is no longer available. Please choose another time.") -> None:
        super().__init__(message)


class ConnectionExpired(BookingEngineError):
    """External calendar credentials were revoked or can no longer be refreshed."""
    default_code = "connection_expired"


class SyncError(BookingEngineError):
    """Transient failure talking to the external calendar provider."""
    default_code = "sync_error"


class Unauthorized(BookingEngineError):
    """Caller lacks the role or ownership required for the resource."""
    default_code = "unauthorized"
