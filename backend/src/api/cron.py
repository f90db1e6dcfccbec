# pyright: reportMissingTypeStubs=false
"""
Cron-invoked endpoints.

Used when an external scheduler drives the jobs instead of the in-process
APScheduler. Requests must carry ``Authorization: Bearer <CRON_SECRET>``.
"""

import asyncio
import hmac
import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from core.config import CRON_SECRET
from core.database import get_db
from services.booking_service import BookingService
from services.calendar_sync_service import CalendarSyncService

router = APIRouter()
logger = logging.getLogger(__name__)


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    """Reject requests without the cron bearer secret."""
    expected = f"Bearer {CRON_SECRET}"
    if not CRON_SECRET or not authorization or not hmac.compare_digest(authorization, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")


@router.get("/expire-pending-bookings", dependencies=[Depends(verify_cron_secret)])
async def expire_pending_bookings(db: Session = Depends(get_db)) -> Dict[str, int]:
    """Delete unpaid bookings past the payment TTL."""
    return BookingService.expire_pending_bookings(db)


@router.get("/sync-calendars", dependencies=[Depends(verify_cron_secret)])
async def sync_calendars() -> Dict[str, int]:
    """Pull-sync every external calendar connection that is due."""
    return await asyncio.to_thread(CalendarSyncService.sync_all_connections)
