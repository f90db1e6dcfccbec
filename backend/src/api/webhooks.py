# pyright: reportMissingTypeStubs=false
"""
Webhook endpoints for external service integrations.

- Google Calendar push notifications trigger a resync of the doctor's
  imported busy time.
- The payment provider reports payment outcomes for pending bookings.
"""

import hmac
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.config import PAYMENT_WEBHOOK_SECRET
from core.database import get_db
from services.booking_service import BookingService
from services.calendar_sync_service import CalendarSyncService

router = APIRouter()
logger = logging.getLogger(__name__)

PAYMENT_STATUS_SUCCEEDED = "succeeded"
PAYMENT_STATUS_FAILED = "failed"


class PaymentWebhookRequest(BaseModel):
    """Payment outcome for a booking."""
    booking_id: int
    status: str  # "succeeded" or "failed"


@router.post(
    "/google-calendar",
    summary="Google Calendar Webhook",
    description="Receive push notifications for Google Calendar changes",
    responses={
        200: {"description": "Notification acknowledged"},
        400: {"description": "Missing notification headers"},
    },
)
async def google_calendar_webhook(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    """
    Process Google Calendar push notification webhooks.

    Google retries deliveries that are not acknowledged with a 2xx, so sync
    failures are logged and still acknowledged; unknown channels are
    acknowledged as ignored.
    """
    resource_state = request.headers.get("X-Goog-Resource-State")
    resource_id = request.headers.get("X-Goog-Resource-ID")
    channel_id = request.headers.get("X-Goog-Channel-ID")
    message_number = request.headers.get("X-Goog-Message-Number")

    logger.info(
        f"Received Google Calendar webhook - State: {resource_state}, Resource ID: {resource_id}, "
        f"Channel ID: {channel_id}, Message: {message_number}"
    )

    return CalendarSyncService.handle_calendar_webhook(db, channel_id, resource_id, resource_state)


@router.post(
    "/payments",
    summary="Payment Webhook",
    description="Receive payment outcomes for pending bookings",
)
async def payment_webhook(
    payload: PaymentWebhookRequest,
    x_webhook_secret: Optional[str] = Header(default=None),
    db: Session = Depends(get_db)
) -> Dict[str, Any]:
    """
    Promote a paid booking, or release the slot of a failed payment.
    """
    if not PAYMENT_WEBHOOK_SECRET:
        logger.error("PAYMENT_WEBHOOK_SECRET is not configured, rejecting payment webhook")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, PAYMENT_WEBHOOK_SECRET):
        logger.warning("Rejected payment webhook with invalid secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")

    if payload.status == PAYMENT_STATUS_SUCCEEDED:
        booking = BookingService.confirm_booking_payment(db, payload.booking_id)
        return {"status": "ok", "booking_status": booking.status}
    if payload.status == PAYMENT_STATUS_FAILED:
        deleted = BookingService.fail_booking_payment(db, payload.booking_id)
        return {"status": "ok", "deleted": deleted}

    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown payment status: {payload.status}")
