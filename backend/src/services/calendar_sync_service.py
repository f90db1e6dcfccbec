"""
Calendar sync controller.

Keeps ExternalBusyInterval rows in step with a doctor's Google Calendar.
Webhook deliveries and the scheduled pull both end in ``resync``, which
replaces the connection's intervals for the look-ahead window instead of
patching them. Running it twice, or out of order, leaves the same rows.

Sync never changes a booking's status or time. Besides its own connection
row and that connection's intervals it only records the Google event created
for a confirmed booking (``Booking.google_event_id``). Exporting and
removing those events is best-effort: failures are logged and never undo the
booking change that triggered them.
"""

import logging
import uuid
from contextlib import AbstractContextManager
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import GOOGLE_CALENDAR_WEBHOOK_URL
from core.constants import (
    CALENDAR_PROVIDER_GOOGLE,
    CALENDAR_SYNC_DAYS_AHEAD,
    CALENDAR_SYNC_INTERVAL_MINUTES,
    CALENDAR_SYNC_MAX_BACKOFF_MINUTES,
    CALENDAR_WEBHOOK_RENEWAL_HOURS,
    CALENDAR_WEBHOOK_TTL_DAYS,
    CONNECTION_STATUS_ACTIVE,
    CONNECTION_STATUS_EXPIRED,
    CONSULTATION_TYPE_LABELS,
)
from core.database import get_db_context
from core.exceptions import BookingEngineError, ConnectionExpired, NotFoundError, SyncError, ValidationError
from models import Booking, ExternalBusyInterval, ExternalCalendarConnection
from services.encryption_service import get_encryption_service
from services.google_calendar_service import (
    BusyEvent,
    GoogleCalendarAuthError,
    GoogleCalendarError,
    GoogleCalendarService,
)
from services.notification_service import NotificationEvent, NotificationService
from utils.datetime_utils import local_to_utc, utc_now

logger = logging.getLogger(__name__)

RESOURCE_STATE_SYNC = "sync"

SessionContext = Callable[[], AbstractContextManager[Session]]


def next_backoff(consecutive_failures: int) -> timedelta:
    """Delay before the next scheduled sync after ``consecutive_failures`` failures."""
    minutes = CALENDAR_SYNC_INTERVAL_MINUTES * (2 ** max(consecutive_failures - 1, 0))
    return timedelta(minutes=min(minutes, CALENDAR_SYNC_MAX_BACKOFF_MINUTES))


class CalendarSyncService:
    """Service class for external calendar synchronization."""

    @staticmethod
    def build_calendar_service(connection: ExternalCalendarConnection) -> GoogleCalendarService:
        """
        Create an API client from the connection's stored credentials.

        Raises:
            GoogleCalendarAuthError: If credentials are missing, unreadable or revoked
            GoogleCalendarError: If the client cannot be created
        """
        if not connection.encrypted_credentials:
            raise GoogleCalendarAuthError(f"Connection {connection.id} has no stored credentials")
        try:
            credentials_info = get_encryption_service().decrypt_data(connection.encrypted_credentials)
        except ValueError as e:
            raise GoogleCalendarAuthError(f"Stored credentials for connection {connection.id} are unreadable: {e}")
        return GoogleCalendarService(credentials_info, calendar_id=connection.calendar_id)

    @staticmethod
    def find_connection(db: Session, doctor_id: int) -> Optional[ExternalCalendarConnection]:
        """Get the doctor's Google connection, if any."""
        return db.query(ExternalCalendarConnection).filter(
            ExternalCalendarConnection.doctor_id == doctor_id,
            ExternalCalendarConnection.provider == CALENDAR_PROVIDER_GOOGLE
        ).first()

    @staticmethod
    def require_connection(db: Session, doctor_id: int) -> ExternalCalendarConnection:
        """
        Get the doctor's Google connection.

        Raises:
            NotFoundError: If the doctor has no connection
        """
        connection = CalendarSyncService.find_connection(db, doctor_id)
        if not connection:
            raise NotFoundError("No calendar connection found")
        return connection

    @staticmethod
    def _clear_channel(connection: ExternalCalendarConnection) -> None:
        connection.webhook_channel_id = None
        connection.webhook_resource_id = None
        connection.webhook_expiration = None

    @staticmethod
    def _store_refreshed_credentials(connection: ExternalCalendarConnection, gcal: GoogleCalendarService) -> None:
        if getattr(gcal, "refreshed", False):
            connection.encrypted_credentials = get_encryption_service().encrypt_data(gcal.export_credentials())
            logger.debug(f"Stored refreshed credentials for connection {connection.id}")

    @staticmethod
    def replace_busy_intervals(
        db: Session,
        connection: ExternalCalendarConnection,
        window_start: datetime,
        window_end: datetime,
        events: List[BusyEvent]
    ) -> int:
        """
        Replace the connection's intervals for [window_start, window_end).

        Intervals overlapping the window are deleted together with intervals
        that already ended, then the fetched events are inserted. Does not
        commit.

        Returns:
            Number of inserted intervals
        """
        db.query(ExternalBusyInterval).filter(
            ExternalBusyInterval.connection_id == connection.id,
            or_(
                ExternalBusyInterval.end_at <= window_start,
                (ExternalBusyInterval.start_at < window_end) & (ExternalBusyInterval.end_at > window_start)
            )
        ).delete(synchronize_session=False)

        for event in events:
            db.add(ExternalBusyInterval(
                connection_id=connection.id,
                start_at=event.start,
                end_at=event.end,
                provider_event_id=event.event_id,
            ))
        return len(events)

    @staticmethod
    def mark_expired(db: Session, connection: ExternalCalendarConnection, reason: str) -> None:
        """Mark a connection expired so its busy time stops affecting availability."""
        connection.status = CONNECTION_STATUS_EXPIRED
        connection.last_sync_error = reason
        db.commit()
        logger.warning(f"Calendar connection {connection.id} (doctor {connection.doctor_id}) marked expired: {reason}")
        NotificationService.emit(NotificationEvent.CONNECTION_EXPIRED, {
            "connection_id": connection.id,
            "doctor_id": connection.doctor_id,
            "reason": reason,
        })

    @staticmethod
    def record_sync_failure(db: Session, connection: ExternalCalendarConnection, error: str, now: datetime) -> None:
        """Record a transient failure and push back the next scheduled sync."""
        connection.consecutive_failures = (connection.consecutive_failures or 0) + 1
        connection.last_sync_error = error
        connection.next_sync_at = now + next_backoff(connection.consecutive_failures)
        db.commit()
        logger.warning(
            f"Sync failed for calendar connection {connection.id} "
            f"({connection.consecutive_failures} consecutive failures, next attempt {connection.next_sync_at}): {error}"
        )

    @staticmethod
    def resync(db: Session, connection: ExternalCalendarConnection, now: Optional[datetime] = None) -> int:
        """
        Re-import the connection's busy time for the look-ahead window.

        Args:
            db: Database session
            connection: Connection to sync
            now: Window start (defaults to now)

        Returns:
            Number of busy intervals imported

        Raises:
            ConnectionExpired: If the connection is not active or its credentials were revoked
            SyncError: If the provider call failed transiently
        """
        if connection.status != CONNECTION_STATUS_ACTIVE:
            raise ConnectionExpired(f"Calendar connection {connection.id} is {connection.status}")

        now = now or utc_now()
        window_start = now
        window_end = now + timedelta(days=CALENDAR_SYNC_DAYS_AHEAD)

        try:
            gcal = CalendarSyncService.build_calendar_service(connection)
            result = gcal.list_busy_events(window_start, window_end)
        except GoogleCalendarAuthError as e:
            db.rollback()
            CalendarSyncService.mark_expired(db, connection, str(e))
            raise ConnectionExpired(f"Calendar access for connection {connection.id} was revoked")
        except GoogleCalendarError as e:
            db.rollback()
            CalendarSyncService.record_sync_failure(db, connection, str(e), now)
            raise SyncError(f"Calendar sync failed for connection {connection.id}: {e}")

        imported = CalendarSyncService.replace_busy_intervals(db, connection, window_start, window_end, result.events)

        CalendarSyncService._store_refreshed_credentials(connection, gcal)
        connection.sync_token = result.next_sync_token or connection.sync_token
        connection.last_synced_at = now
        connection.last_sync_error = None
        connection.consecutive_failures = 0
        connection.next_sync_at = now + timedelta(minutes=CALENDAR_SYNC_INTERVAL_MINUTES)
        db.commit()

        logger.info(f"Synced calendar connection {connection.id}: {imported} busy intervals")
        return imported

    @staticmethod
    def handle_calendar_webhook(
        db: Session,
        channel_id: Optional[str],
        resource_id: Optional[str],
        resource_state: Optional[str],
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Handle a Google Calendar push notification.

        The initial 'sync' message only confirms the subscription. Unknown
        channels (e.g. already disconnected) are acknowledged and dropped.
        Sync failures are recorded and reported but still acknowledged, the
        next delivery or scheduled pull retries.

        Returns:
            {"status": "ok"} or {"status": "ignored"}, with details

        Raises:
            ValidationError: If the notification identifiers are missing
        """
        if not channel_id or not resource_id or not resource_state:
            raise ValidationError("Missing Google Calendar notification headers")

        if resource_state == RESOURCE_STATE_SYNC:
            logger.info(f"Google Calendar channel {channel_id} subscription confirmed")
            return {"status": "ok"}

        connection = db.query(ExternalCalendarConnection).filter(
            ExternalCalendarConnection.webhook_channel_id == channel_id,
            ExternalCalendarConnection.webhook_resource_id == resource_id
        ).first()

        if not connection:
            logger.info(f"Ignoring notification for unknown channel {channel_id}")
            return {"status": "ignored"}

        if not connection.sync_enabled or connection.status != CONNECTION_STATUS_ACTIVE:
            logger.info(f"Ignoring notification for inactive calendar connection {connection.id}")
            return {"status": "ignored"}

        try:
            imported = CalendarSyncService.resync(db, connection, now=now)
        except (ConnectionExpired, SyncError) as e:
            logger.warning(f"Webhook resync failed for connection {connection.id}: {e.message}")
            NotificationService.emit(NotificationEvent.SYNC_FAILED, {
                "connection_id": connection.id,
                "doctor_id": connection.doctor_id,
                "error": e.message,
            })
            return {"status": "ok", "synced": False}

        return {"status": "ok", "synced": True, "events_processed": imported}

    @staticmethod
    def run_scheduled_sync(db: Session, connection_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Pull-sync a single connection.

        Returns:
            {"events_processed": n}

        Raises:
            NotFoundError: If the connection does not exist
            ConnectionExpired: If the connection is not active
            SyncError: If the provider call failed
        """
        connection = db.query(ExternalCalendarConnection).filter(
            ExternalCalendarConnection.id == connection_id
        ).first()
        if not connection:
            raise NotFoundError(f"Calendar connection {connection_id} not found")

        imported = CalendarSyncService.resync(db, connection, now=now)
        return {"events_processed": imported}

    @staticmethod
    def sync_all_connections(
        session_context: SessionContext = get_db_context,
        now: Optional[datetime] = None
    ) -> Dict[str, int]:
        """
        Pull-sync every active connection that is due.

        Each connection gets its own session, so one failure never affects
        another connection. Failures are logged and counted.

        Returns:
            Counts of synced and failed connections
        """
        now = now or utc_now()
        with session_context() as db:
            due_ids = [row.id for row in db.query(ExternalCalendarConnection.id).filter(
                ExternalCalendarConnection.status == CONNECTION_STATUS_ACTIVE,
                ExternalCalendarConnection.sync_enabled == True,  # noqa: E712
                or_(
                    ExternalCalendarConnection.next_sync_at.is_(None),
                    ExternalCalendarConnection.next_sync_at <= now
                )
            ).all()]

        synced = 0
        failed = 0
        for connection_id in due_ids:
            try:
                with session_context() as db:
                    CalendarSyncService.run_scheduled_sync(db, connection_id, now=now)
                synced += 1
            except BookingEngineError as e:
                failed += 1
                logger.warning(f"Scheduled sync failed for connection {connection_id}: {e.message}")
                NotificationService.emit(NotificationEvent.SYNC_FAILED, {
                    "connection_id": connection_id,
                    "error": e.message,
                })
            except Exception as e:
                failed += 1
                logger.exception(f"Unexpected error syncing connection {connection_id}: {e}")

        if due_ids:
            logger.info(f"Scheduled calendar sync: {synced} synced, {failed} failed")
        return {"synced": synced, "failed": failed}

    @staticmethod
    def register_webhook(
        db: Session,
        connection: ExternalCalendarConnection,
        gcal: Optional[GoogleCalendarService] = None,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Register a fresh push channel for the connection.

        Push notifications only speed up syncing, so failures are logged and
        reported as False; the scheduled pull keeps the data current. A
        resource already watched by another connection (two doctors sharing
        one calendar) is a failure too: the new channel is stopped again and
        the connection stays on scheduled pulls.
        """
        channel_id = str(uuid.uuid4())
        try:
            gcal = gcal or CalendarSyncService.build_calendar_service(connection)
            watch = gcal.watch_calendar(channel_id, GOOGLE_CALENDAR_WEBHOOK_URL, timedelta(days=CALENDAR_WEBHOOK_TTL_DAYS))
        except GoogleCalendarError as e:
            logger.warning(f"Failed to register webhook for calendar connection {connection.id}: {e}")
            return False

        connection_id = connection.id
        resource_id = watch.get("resource_id")
        connection.webhook_channel_id = channel_id
        connection.webhook_resource_id = resource_id
        connection.webhook_expiration = watch.get("expiration") or (
            (now or utc_now()) + timedelta(days=CALENDAR_WEBHOOK_TTL_DAYS)
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(
                f"Calendar resource {resource_id} is already watched by another connection; "
                f"connection {connection_id} keeps scheduled sync only"
            )
            try:
                gcal.stop_channel(channel_id, resource_id)
            except GoogleCalendarError as e:
                logger.info(f"Ignoring error stopping channel {channel_id}: {e}")
            return False
        return True

    @staticmethod
    def stop_webhook(connection: ExternalCalendarConnection) -> None:
        """Stop the connection's push channel; provider errors are ignored."""
        if not connection.webhook_channel_id or not connection.webhook_resource_id:
            return
        try:
            gcal = CalendarSyncService.build_calendar_service(connection)
            gcal.stop_channel(connection.webhook_channel_id, connection.webhook_resource_id)
        except GoogleCalendarError as e:
            logger.info(f"Ignoring error stopping channel {connection.webhook_channel_id}: {e}")

    @staticmethod
    def renew_expiring_channels(
        session_context: SessionContext = get_db_context,
        now: Optional[datetime] = None
    ) -> Dict[str, int]:
        """
        Replace push channels that expire within the renewal window.

        Connections without a channel are registered too.

        Returns:
            Counts of renewed and failed channels
        """
        now = now or utc_now()
        renew_before = now + timedelta(hours=CALENDAR_WEBHOOK_RENEWAL_HOURS)

        with session_context() as db:
            ids = [row.id for row in db.query(ExternalCalendarConnection.id).filter(
                ExternalCalendarConnection.status == CONNECTION_STATUS_ACTIVE,
                ExternalCalendarConnection.sync_enabled == True,  # noqa: E712
                or_(
                    ExternalCalendarConnection.webhook_expiration.is_(None),
                    ExternalCalendarConnection.webhook_expiration <= renew_before
                )
            ).all()]

        renewed = 0
        failed = 0
        for connection_id in ids:
            try:
                with session_context() as db:
                    connection = db.get(ExternalCalendarConnection, connection_id)
                    if connection is None:
                        continue
                    CalendarSyncService.stop_webhook(connection)
                    if CalendarSyncService.register_webhook(db, connection, now=now):
                        renewed += 1
                    else:
                        failed += 1
            except Exception as e:
                failed += 1
                logger.exception(f"Unexpected error renewing channel for connection {connection_id}: {e}")

        if ids:
            logger.info(f"Calendar channel renewal: {renewed} renewed, {failed} failed")
        return {"renewed": renewed, "failed": failed}

    @staticmethod
    def connect_calendar(
        db: Session,
        doctor_id: int,
        credentials_info: Dict[str, Any],
        account_email: Optional[str] = None,
        calendar_id: str = GoogleCalendarService.DEFAULT_CALENDAR_ID,
        now: Optional[datetime] = None
    ) -> ExternalCalendarConnection:
        """
        Create or re-activate the doctor's Google connection.

        Stores encrypted credentials, runs the initial resync and registers a
        push channel. An initial sync failure does not undo the connection;
        the scheduled pull retries it.
        """
        connection = CalendarSyncService.find_connection(db, doctor_id)

        if connection:
            # Reconnecting: the old channel belongs to the old grant
            CalendarSyncService.stop_webhook(connection)
            CalendarSyncService._clear_channel(connection)
        else:
            connection = ExternalCalendarConnection(doctor_id=doctor_id, provider=CALENDAR_PROVIDER_GOOGLE)
            db.add(connection)

        connection.encrypted_credentials = get_encryption_service().encrypt_data(credentials_info)
        connection.account_email = account_email
        connection.calendar_id = calendar_id
        connection.status = CONNECTION_STATUS_ACTIVE
        connection.sync_enabled = True
        connection.sync_token = None
        connection.last_sync_error = None
        connection.consecutive_failures = 0
        connection.next_sync_at = None
        db.commit()
        logger.info(f"Connected Google Calendar for doctor {doctor_id} (connection {connection.id})")

        try:
            CalendarSyncService.resync(db, connection, now=now)
        except (ConnectionExpired, SyncError) as e:
            logger.warning(f"Initial sync failed for connection {connection.id}: {e.message}")
            return connection

        CalendarSyncService.register_webhook(db, connection, now=now)
        return connection

    @staticmethod
    def disconnect_calendar(db: Session, doctor_id: int) -> None:
        """
        Remove the doctor's Google connection and its imported busy time.

        Raises:
            NotFoundError: If the doctor has no connection
        """
        connection = CalendarSyncService.require_connection(db, doctor_id)

        CalendarSyncService.stop_webhook(connection)

        db.query(ExternalBusyInterval).filter(
            ExternalBusyInterval.connection_id == connection.id
        ).delete(synchronize_session=False)
        db.delete(connection)
        db.commit()
        logger.info(f"Disconnected Google Calendar for doctor {doctor_id}")

    @staticmethod
    def sync_doctor_calendar(db: Session, doctor_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Manually resync the doctor's connection.

        Raises:
            NotFoundError: If the doctor has no connection
            ConnectionExpired: If the connection must be reconnected
            SyncError: If the provider call failed
        """
        connection = CalendarSyncService.require_connection(db, doctor_id)
        return {"events_processed": CalendarSyncService.resync(db, connection, now=now)}


    @staticmethod
    def list_calendars(db: Session, doctor_id: int) -> List[Dict[str, Any]]:
        """
        List the calendars the doctor's Google account can see.

        Raises:
            NotFoundError: If the doctor has no connection
            ConnectionExpired: If the connection must be reconnected
            SyncError: If the provider call failed
        """
        connection = CalendarSyncService.require_connection(db, doctor_id)
        if connection.status != CONNECTION_STATUS_ACTIVE:
            raise ConnectionExpired(f"Calendar connection {connection.id} is {connection.status}")

        try:
            gcal = CalendarSyncService.build_calendar_service(connection)
            calendars = gcal.list_calendars()
        except GoogleCalendarAuthError as e:
            CalendarSyncService.mark_expired(db, connection, str(e))
            raise ConnectionExpired(f"Calendar access for connection {connection.id} was revoked")
        except GoogleCalendarError as e:
            raise SyncError(f"Could not list calendars for connection {connection.id}: {e}")

        CalendarSyncService._store_refreshed_credentials(connection, gcal)
        db.commit()
        return calendars

    @staticmethod
    def update_settings(
        db: Session,
        doctor_id: int,
        sync_enabled: Optional[bool] = None,
        calendar_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> ExternalCalendarConnection:
        """
        Turn syncing on or off, or switch to another calendar of the account.

        Turning sync off stops the push channel and drops the imported busy
        time, so availability no longer depends on the calendar. Turning it
        back on, or switching calendars, starts over with a full resync and a
        new push channel. Bookings are only exported while sync is on.

        Raises:
            NotFoundError: If the doctor has no connection
            ValidationError: If calendar_id is blank
        """
        connection = CalendarSyncService.require_connection(db, doctor_id)

        restart = False
        if calendar_id is not None:
            calendar_id = calendar_id.strip()
            if not calendar_id:
                raise ValidationError("Calendar ID cannot be empty")
            if calendar_id != connection.calendar_id:
                connection.calendar_id = calendar_id
                restart = True

        if sync_enabled is not None and sync_enabled != connection.sync_enabled:
            connection.sync_enabled = sync_enabled
            restart = restart or sync_enabled

        if not restart and (sync_enabled is None or sync_enabled):
            db.commit()
            return connection

        # The old channel and busy time belong to the previous settings
        CalendarSyncService.stop_webhook(connection)
        CalendarSyncService._clear_channel(connection)
        db.query(ExternalBusyInterval).filter(
            ExternalBusyInterval.connection_id == connection.id
        ).delete(synchronize_session=False)
        connection.sync_token = None
        connection.next_sync_at = None
        connection.consecutive_failures = 0
        connection.last_sync_error = None
        db.commit()
        logger.info(
            f"Updated calendar settings for doctor {doctor_id}: "
            f"calendar={connection.calendar_id}, sync_enabled={connection.sync_enabled}"
        )

        if not connection.sync_enabled or connection.status != CONNECTION_STATUS_ACTIVE:
            return connection

        try:
            CalendarSyncService.resync(db, connection, now=now)
        except (ConnectionExpired, SyncError) as e:
            logger.warning(f"Resync after settings change failed for connection {connection.id}: {e.message}")
            return connection

        CalendarSyncService.register_webhook(db, connection, now=now)
        return connection

    @staticmethod
    def _exportable_connection(db: Session, doctor_id: int) -> Optional[ExternalCalendarConnection]:
        connection = CalendarSyncService.find_connection(db, doctor_id)
        if not connection or not connection.sync_enabled or connection.status != CONNECTION_STATUS_ACTIVE:
            return None
        return connection

    @staticmethod
    def export_booking(db: Session, booking: Booking) -> Optional[str]:
        """
        Create an event for a confirmed booking in the doctor's calendar.

        Does nothing when the booking was exported before or the doctor has no
        active, syncing connection. Failures are logged and reported as None.

        Returns:
            The Google event ID, or None
        """
        if booking.google_event_id:
            return booking.google_event_id

        connection = CalendarSyncService._exportable_connection(db, booking.doctor_id)
        if connection is None:
            return None

        doctor = booking.doctor
        patient_name = booking.patient.full_name if booking.patient else "Patient"
        type_label = CONSULTATION_TYPE_LABELS.get(booking.consultation_type, booking.consultation_type)
        description_lines = [
            f"Booking #{booking.id}",
            f"Patient: {patient_name}",
            f"Type: {type_label}",
        ]
        if booking.patient_notes:
            description_lines.append(f"Notes: {booking.patient_notes}")

        try:
            gcal = CalendarSyncService.build_calendar_service(connection)
            event = gcal.create_event(
                summary=f"{type_label} appointment: {patient_name}",
                start=local_to_utc(booking.appointment_date, booking.start_time, doctor.timezone),
                end=local_to_utc(booking.appointment_date, booking.end_time, doctor.timezone),
                description="\n".join(description_lines),
                time_zone=doctor.timezone,
                booking_id=booking.id,
            )
        except GoogleCalendarAuthError as e:
            CalendarSyncService.mark_expired(db, connection, str(e))
            return None
        except GoogleCalendarError as e:
            logger.warning(f"Failed to export booking {booking.id} to Google Calendar: {e}")
            return None

        booking.google_event_id = event.get("id")
        CalendarSyncService._store_refreshed_credentials(connection, gcal)
        db.commit()
        logger.info(f"Exported booking {booking.id} to Google Calendar event {booking.google_event_id}")
        return booking.google_event_id

    @staticmethod
    def remove_booking_event(db: Session, booking: Booking) -> bool:
        """
        Delete the event exported for a booking that no longer holds its slot.

        Failures are logged and reported as False; the event ID is kept so a
        later attempt can still find the event.
        """
        if not booking.google_event_id:
            return False

        connection = CalendarSyncService.find_connection(db, booking.doctor_id)
        if not connection or connection.status != CONNECTION_STATUS_ACTIVE:
            logger.info(f"No active calendar connection to remove the event of booking {booking.id}")
            return False

        try:
            gcal = CalendarSyncService.build_calendar_service(connection)
            gcal.delete_event(booking.google_event_id)
        except GoogleCalendarAuthError as e:
            CalendarSyncService.mark_expired(db, connection, str(e))
            return False
        except GoogleCalendarError as e:
            logger.warning(f"Failed to remove Google Calendar event of booking {booking.id}: {e}")
            return False

        logger.info(f"Removed Google Calendar event {booking.google_event_id} of booking {booking.id}")
        booking.google_event_id = None
        CalendarSyncService._store_refreshed_credentials(connection, gcal)
        db.commit()
        return True
