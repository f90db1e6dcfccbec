# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportMissingTypeStubs=false
"""
Google Calendar service for a doctor's connected calendar.

This module handles all Google Calendar API interactions of the sync
controller: listing events for the sync window, listing calendars,
creating and deleting events for bookings, registering push-notification
channels and stopping them again.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from utils.datetime_utils import format_rfc3339, parse_rfc3339

logger = logging.getLogger(__name__)

# Private extended property marking events created for bookings
BOOKING_ID_PROPERTY = 'booking_id'


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""
    pass


class GoogleCalendarAuthError(GoogleCalendarError):
    """Credentials were revoked or can no longer be refreshed."""
    pass


@dataclass
class BusyEvent:
    """A timed, opaque event imported as busy time."""
    event_id: Optional[str]
    start: datetime
    end: datetime


@dataclass
class BusyEventsResult:
    events: List[BusyEvent] = field(default_factory=list)
    next_sync_token: Optional[str] = None
    skipped_count: int = 0


def _error_details(e: HttpError) -> Dict[str, Any]:
    try:
        return json.loads(e.content.decode('utf-8')).get('error', {}) if e.content else {}
    except (ValueError, AttributeError):
        return {}


def _is_auth_failure(e: HttpError) -> bool:
    """401s, and 403s caused by revoked grants, need the doctor to reconnect."""
    status = getattr(e.resp, 'status', None)
    if status == 401:
        return True
    if status == 403:
        details = _error_details(e)
        reasons = {err.get('reason') for err in details.get('errors', []) if isinstance(err, dict)}
        return bool(reasons & {'authError', 'insufficientPermissions', 'forbidden'})
    return False


def parse_busy_event(event: Dict[str, Any]) -> Optional[BusyEvent]:
    """
    Convert a Google event resource into busy time.

    Returns None for events that do not block the doctor's time: cancelled
    events, events marked as free (transparent) and all-day events. Events
    exported for bookings are skipped too; the booking itself holds the slot.
    """
    if event.get('status') == 'cancelled':
        return None
    private = (event.get('extendedProperties') or {}).get('private') or {}
    if BOOKING_ID_PROPERTY in private:
        return None
    if event.get('transparency') == 'transparent':
        return None

    start = event.get('start') or {}
    end = event.get('end') or {}
    if 'dateTime' not in start or 'dateTime' not in end:
        # All-day events carry only 'date'
        return None

    try:
        start_at = parse_rfc3339(start['dateTime'])
        end_at = parse_rfc3339(end['dateTime'])
    except ValueError:
        logger.warning(f"Skipping Google event {event.get('id')} with unparseable times")
        return None

    if end_at <= start_at:
        return None

    return BusyEvent(event_id=event.get('id'), start=start_at, end=end_at)


class GoogleCalendarService:
    """
    Service for Google Calendar API operations.

    Attributes:
        credentials: Google OAuth2 credentials for API access
        calendar_id: Google Calendar ID (defaults to primary calendar)
        service: Google Calendar API service client
    """

    # Default calendar ID (primary calendar)
    DEFAULT_CALENDAR_ID = 'primary'
    MAX_RESULTS_PER_PAGE = 2500

    def __init__(self, credentials_info: Dict[str, Any], calendar_id: str = DEFAULT_CALENDAR_ID) -> None:
        """
        Initialize Google Calendar service.

        Args:
            credentials_info: Stored OAuth2 credentials (token, refresh_token, token_uri, ...)
            calendar_id: Google Calendar ID to operate on (defaults to primary)

        Raises:
            GoogleCalendarAuthError: If the stored token cannot be refreshed
            GoogleCalendarError: If service initialization fails
        """
        try:
            creds_data = dict(credentials_info)
            # Add OAuth2 client configuration to the credentials
            creds_data.update({
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET
            })
            self.credentials = Credentials.from_authorized_user_info(creds_data)
            self.refreshed = False

            # Refresh token if expired
            if self.credentials.expired and self.credentials.refresh_token:
                self.credentials.refresh(Request())
                self.refreshed = True

            self.service = build('calendar', 'v3', credentials=self.credentials, cache_discovery=False)
            self.calendar_id = calendar_id

        except RefreshError as e:
            raise GoogleCalendarAuthError(f"Google credentials could not be refreshed: {e}")
        except ValueError as e:
            raise GoogleCalendarAuthError(f"Invalid Google credentials: {e}")
        except Exception as e:
            raise GoogleCalendarError(f"Failed to initialize Google Calendar service: {e}")

    def export_credentials(self) -> Dict[str, Any]:
        """Credentials in storable form, including a refreshed access token."""
        data = json.loads(self.credentials.to_json())
        # Client configuration comes from the environment, not storage
        data.pop("client_id", None)
        data.pop("client_secret", None)
        return data

    def _translate_http_error(self, e: HttpError, action: str) -> GoogleCalendarError:
        details = _error_details(e)
        message = details.get('message', str(e))
        if _is_auth_failure(e):
            logger.warning(f"Google Calendar auth failure while trying to {action}: {message}")
            return GoogleCalendarAuthError(f"Failed to {action}: {message}")
        logger.error(f"Google Calendar API error while trying to {action}: {message} (status: {getattr(e.resp, 'status', 'unknown')})")
        return GoogleCalendarError(f"Failed to {action}: {message}")

    def list_busy_events(self, time_min: datetime, time_max: datetime) -> BusyEventsResult:
        """
        List events in [time_min, time_max) and keep the ones that block time.

        Recurring events are expanded into single instances by the API.

        Raises:
            GoogleCalendarAuthError: If access was revoked
            GoogleCalendarError: For any other API failure
        """
        result = BusyEventsResult()
        page_token: Optional[str] = None

        try:
            while True:
                response = self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=format_rfc3339(time_min),
                    timeMax=format_rfc3339(time_max),
                    singleEvents=True,
                    orderBy='startTime',
                    maxResults=self.MAX_RESULTS_PER_PAGE,
                    pageToken=page_token
                ).execute()

                for item in response.get('items', []):
                    busy = parse_busy_event(item)
                    if busy is None:
                        result.skipped_count += 1
                    else:
                        result.events.append(busy)

                page_token = response.get('nextPageToken')
                if not page_token:
                    result.next_sync_token = response.get('nextSyncToken')
                    break

        except HttpError as e:
            raise self._translate_http_error(e, "list calendar events")
        except RefreshError as e:
            raise GoogleCalendarAuthError(f"Google credentials could not be refreshed: {e}")

        logger.debug(
            f"Fetched {len(result.events)} busy events from calendar {self.calendar_id} "
            f"({result.skipped_count} skipped)"
        )
        return result

    def list_calendars(self) -> List[Dict[str, Any]]:
        """
        List the calendars the account can see.

        Returns:
            Dicts with 'id', 'summary' and 'primary'

        Raises:
            GoogleCalendarAuthError: If access was revoked
            GoogleCalendarError: For any other API failure
        """
        calendars: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        try:
            while True:
                response = self.service.calendarList().list(pageToken=page_token).execute()
                for item in response.get('items', []):
                    calendars.append({
                        'id': item.get('id'),
                        'summary': item.get('summaryOverride') or item.get('summary') or item.get('id'),
                        'primary': bool(item.get('primary', False)),
                    })
                page_token = response.get('nextPageToken')
                if not page_token:
                    break
        except HttpError as e:
            raise self._translate_http_error(e, "list calendars")
        except RefreshError as e:
            raise GoogleCalendarAuthError(f"Google credentials could not be refreshed: {e}")
        return calendars

    def create_event(
        self,
        summary: str,
        start: datetime,
        end: datetime,
        description: str = "",
        time_zone: str = "UTC",
        booking_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Create an event for a booking.

        Args:
            summary: Event title
            start: Event start (aware, or naive UTC)
            end: Event end (aware, or naive UTC)
            description: Event description
            time_zone: IANA zone the event is shown in
            booking_id: Stored as a private extended property, so the event is
                recognised as the engine's own when busy time is imported

        Returns:
            Google Calendar event data including event ID

        Raises:
            GoogleCalendarAuthError: If access was revoked
            GoogleCalendarError: If event creation fails
        """
        event_body: Dict[str, Any] = {
            'summary': summary or '',
            'description': description or '',
            'start': {'dateTime': format_rfc3339(start), 'timeZone': time_zone},
            'end': {'dateTime': format_rfc3339(end), 'timeZone': time_zone},
        }
        if booking_id is not None:
            event_body['extendedProperties'] = {'private': {BOOKING_ID_PROPERTY: str(booking_id)}}

        logger.debug(f"Creating Google Calendar event with calendar_id={self.calendar_id}, body={json.dumps(event_body)}")
        try:
            event = self.service.events().insert(calendarId=self.calendar_id, body=event_body).execute()
        except HttpError as e:
            raise self._translate_http_error(e, "create calendar event")
        except RefreshError as e:
            raise GoogleCalendarAuthError(f"Google credentials could not be refreshed: {e}")

        logger.info(f"Google Calendar event created successfully: {event.get('id')}")
        return event

    def delete_event(self, event_id: str) -> None:
        """
        Delete an event. Events already gone (404/410) count as deleted.

        Raises:
            GoogleCalendarAuthError: If access was revoked
            GoogleCalendarError: If event deletion fails
        """
        try:
            self.service.events().delete(calendarId=self.calendar_id, eventId=event_id).execute()
        except HttpError as e:
            if getattr(e.resp, 'status', None) in (404, 410):
                logger.info(f"Google Calendar event {event_id} was already deleted")
                return
            raise self._translate_http_error(e, "delete calendar event")
        except RefreshError as e:
            raise GoogleCalendarAuthError(f"Google credentials could not be refreshed: {e}")

    def watch_calendar(self, channel_id: str, webhook_url: str, ttl: timedelta) -> Dict[str, Any]:
        """
        Register a push-notification channel for the calendar's events.

        Returns:
            Dict with 'resource_id' and 'expiration' (UTC datetime or None)
        """
        body = {
            'id': channel_id,
            'type': 'web_hook',
            'address': webhook_url,
            'params': {'ttl': str(int(ttl.total_seconds()))},
        }
        try:
            response = self.service.events().watch(calendarId=self.calendar_id, body=body).execute()
        except HttpError as e:
            raise self._translate_http_error(e, "register calendar webhook")

        expiration = None
        if response.get('expiration'):
            # Milliseconds since epoch
            expiration = datetime.fromtimestamp(int(response['expiration']) / 1000, tz=timezone.utc)

        logger.info(f"Registered Google Calendar channel {channel_id} for calendar {self.calendar_id}")
        return {'resource_id': response.get('resourceId'), 'expiration': expiration}

    def stop_channel(self, channel_id: str, resource_id: str) -> None:
        """
        Stop a push-notification channel.

        Raises:
            GoogleCalendarError: If the API call fails (callers usually ignore this)
        """
        try:
            self.service.channels().stop(body={'id': channel_id, 'resourceId': resource_id}).execute()
            logger.info(f"Stopped Google Calendar channel {channel_id}")
        except HttpError as e:
            raise self._translate_http_error(e, "stop calendar webhook")
