"""
HTTP mapping for service errors.

Services raise ``BookingEngineError`` subclasses; these handlers turn them
into JSON responses with a stable ``type`` field.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.exceptions import (
    BookingEngineError,
    ConnectionExpired,
    NotFoundError,
    SlotAlreadyTaken,
    SyncError,
    Unauthorized,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (SlotAlreadyTaken, status.HTTP_409_CONFLICT),
    (Unauthorized, status.HTTP_403_FORBIDDEN),
    (ConnectionExpired, status.HTTP_409_CONFLICT),
    (SyncError, status.HTTP_502_BAD_GATEWAY),
)


def status_code_for(exc: BookingEngineError) -> int:
    """HTTP status for a service error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def booking_engine_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle typed service errors."""
    assert isinstance(exc, BookingEngineError)
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "type": exc.code},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookingEngineError, booking_engine_error_handler)
