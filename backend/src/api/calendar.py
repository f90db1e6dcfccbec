# pyright: reportMissingTypeStubs=false
"""
Doctor calendar connection endpoints.

Covers the Google OAuth connect flow, calendar selection, the sync toggle,
manual sync and disconnect.
"""

import logging
import urllib.parse
from typing import Dict, List, Optional

import httpx
from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.responses import (
    CalendarConnectionResponse,
    CalendarSummaryResponse,
    SuccessResponse,
    SyncResultResponse,
)
from auth.dependencies import UserContext, require_doctor
from core.config import FRONTEND_URL
from core.database import get_db
from core.exceptions import BookingEngineError
from services.calendar_sync_service import CalendarSyncService
from services.google_oauth import google_oauth_service

logger = logging.getLogger(__name__)

router = APIRouter()

CALENDAR_SETTINGS_PATH = "/doctor-dashboard/calendar"


class CalendarSettingsRequest(BaseModel):
    """Partial update of the doctor's calendar connection."""
    sync_enabled: Optional[bool] = None
    calendar_id: Optional[str] = Field(default=None, max_length=255)


def _settings_redirect(**params: str) -> RedirectResponse:
    query = urllib.parse.urlencode(params)
    return RedirectResponse(url=f"{FRONTEND_URL}{CALENDAR_SETTINGS_PATH}?{query}")


@router.get("/doctors/me/calendar", response_model=Optional[CalendarConnectionResponse])
async def get_calendar_connection(
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> Optional[CalendarConnectionResponse]:
    """Get the doctor's calendar connection, or null when not connected."""
    connection = CalendarSyncService.find_connection(db, current_user.user_id)
    return CalendarConnectionResponse.from_connection(connection) if connection else None


@router.get("/doctors/me/calendar/connect")
async def get_calendar_connect_url(current_user: UserContext = Depends(require_doctor)) -> Dict[str, str]:
    """Get the Google consent URL for connecting a calendar."""
    return {"auth_url": google_oauth_service.get_authorization_url(current_user.user_id)}


@router.get("/calendar/google/callback")
async def google_calendar_callback(
    code: Optional[str] = Query(default=None),
    state: Optional[str] = Query(default=None),
    error: Optional[str] = Query(default=None),
    db: Session = Depends(get_db)
) -> RedirectResponse:
    """
    OAuth redirect target.

    Always redirects back to the doctor's calendar settings page, with
    either ``connected=1`` or an ``error`` code.
    """
    if error or not code or not state:
        logger.info(f"Google OAuth callback without code: {error}")
        return _settings_redirect(error=error or "missing_code")

    try:
        doctor_id = google_oauth_service.parse_state(state)
        token_data = await google_oauth_service.exchange_code_for_tokens(code)
        user_info = await google_oauth_service.get_user_info(token_data["access_token"])
        credentials_info = google_oauth_service.build_credentials(token_data)
    except BookingEngineError as e:
        logger.warning(f"Google OAuth callback rejected: {e.message}")
        return _settings_redirect(error=e.code)
    except httpx.HTTPError as e:
        logger.exception(f"Google OAuth token exchange failed: {e}")
        return _settings_redirect(error="token_exchange_failed")

    CalendarSyncService.connect_calendar(
        db,
        doctor_id,
        credentials_info,
        account_email=user_info.get("email"),
    )
    return _settings_redirect(connected="1")


@router.post("/doctors/me/calendar/sync", response_model=SyncResultResponse)
async def sync_calendar(
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> SyncResultResponse:
    """Resync the doctor's calendar now."""
    result = CalendarSyncService.sync_doctor_calendar(db, current_user.user_id)
    return SyncResultResponse(**result)


@router.delete("/doctors/me/calendar", response_model=SuccessResponse)
async def disconnect_calendar(
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> SuccessResponse:
    """Disconnect the doctor's calendar and drop its imported busy time."""
    CalendarSyncService.disconnect_calendar(db, current_user.user_id)
    return SuccessResponse(message="Calendar disconnected")


@router.patch("/doctors/me/calendar", response_model=CalendarConnectionResponse)
async def update_calendar_settings(
    request: CalendarSettingsRequest,
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> CalendarConnectionResponse:
    """Turn calendar sync on or off, or choose which calendar to sync."""
    connection = CalendarSyncService.update_settings(
        db,
        current_user.user_id,
        sync_enabled=request.sync_enabled,
        calendar_id=request.calendar_id,
    )
    return CalendarConnectionResponse.from_connection(connection)


@router.get("/doctors/me/calendar/calendars", response_model=List[CalendarSummaryResponse])
async def list_calendars(
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> List[CalendarSummaryResponse]:
    """List the calendars of the connected Google account."""
    calendars = CalendarSyncService.list_calendars(db, current_user.user_id)
    return [CalendarSummaryResponse(**calendar) for calendar in calendars]
