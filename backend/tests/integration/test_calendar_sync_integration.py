"""
Integration tests for the calendar sync controller.

The Google client is replaced with a mock; everything else (encryption,
database writes, availability) runs for real.
"""

from datetime import datetime, time, timedelta, timezone
from unittest.mock import Mock, patch

import pytest

from core.database import get_db_context
from core.exceptions import ConnectionExpired, SyncError
from models import Booking, Doctor, ExternalBusyInterval, ExternalCalendarConnection
from services.availability_service import AvailabilityService
from services.booking_service import BookingService
from services.calendar_sync_service import CalendarSyncService
from services.encryption_service import get_encryption_service
from services.google_calendar_service import (
    BusyEvent,
    BusyEventsResult,
    GoogleCalendarAuthError,
    GoogleCalendarError,
    GoogleCalendarService,
)
from services.notification_service import NotificationEvent, NotificationService
from utils.datetime_utils import utc_now

WEBHOOK_HEADERS = {
    "X-Goog-Resource-State": "exists",
    "X-Goog-Resource-ID": "resource-1",
    "X-Goog-Channel-ID": "channel-1",
}


def utc(day, hour, minute=0):
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


def fake_gcal(events=None, error=None):
    gcal = Mock(spec=GoogleCalendarService)
    if error is not None:
        gcal.list_busy_events.side_effect = error
    else:
        gcal.list_busy_events.return_value = BusyEventsResult(events=events or [], next_sync_token="token-2")
    gcal.watch_calendar.return_value = {
        "resource_id": "resource-new",
        "expiration": utc_now() + timedelta(days=7),
    }
    return gcal


@pytest.fixture
def connection(db_session, doctor) -> ExternalCalendarConnection:
    connection = ExternalCalendarConnection(
        doctor_id=doctor.id,
        provider="google",
        account_email="dr.test@gmail.com",
        calendar_id="primary",
        encrypted_credentials=get_encryption_service().encrypt_data({"token": "access", "refresh_token": "refresh"}),
        webhook_channel_id="channel-1",
        webhook_resource_id="resource-1",
        webhook_expiration=utc_now() + timedelta(days=5),
        status="active",
        sync_enabled=True,
    )
    db_session.add(connection)
    db_session.commit()
    return connection


def interval_spans(db_session, connection):
    db_session.expire_all()
    rows = db_session.query(ExternalBusyInterval).filter(
        ExternalBusyInterval.connection_id == connection.id
    ).order_by(ExternalBusyInterval.start_at).all()
    return [(row.provider_event_id, row.start_at.replace(tzinfo=None), row.end_at.replace(tzinfo=None)) for row in rows]


class TestResync:
    def test_imports_busy_time_into_availability(self, db_session, doctor, add_rule, connection, future_monday):
        add_rule(doctor, 0, time(9), time(12))
        gcal = fake_gcal([BusyEvent("evt-1", utc(future_monday, 10), utc(future_monday, 10, 45))])
        now = utc_now()

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            imported = CalendarSyncService.resync(db_session, connection, now=now)

        assert imported == 1
        assert connection.last_synced_at == now
        assert connection.consecutive_failures == 0
        assert connection.sync_token == "token-2"
        assert connection.next_sync_at == now + timedelta(minutes=15)
        slots = AvailabilityService.get_available_slots(db_session, doctor.id, future_monday, future_monday)
        assert [s.start_time for s in slots[future_monday]] == [time(9), time(9, 30), time(11), time(11, 30)]

    def test_repeated_resync_leaves_same_rows(self, db_session, connection, future_monday):
        events = [
            BusyEvent("evt-1", utc(future_monday, 10), utc(future_monday, 11)),
            BusyEvent("evt-2", utc(future_monday, 14), utc(future_monday, 15)),
        ]

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=fake_gcal(events)):
            CalendarSyncService.resync(db_session, connection)
            first = interval_spans(db_session, connection)
            CalendarSyncService.resync(db_session, connection)
            second = interval_spans(db_session, connection)

        assert len(first) == 2
        assert first == second

    def test_deleted_events_and_past_intervals_are_removed(self, db_session, connection, future_monday):
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id,
            start_at=utc_now() - timedelta(days=3),
            end_at=utc_now() - timedelta(days=3) + timedelta(hours=1),
            provider_event_id="old",
        ))
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id,
            start_at=utc(future_monday, 8),
            end_at=utc(future_monday, 9),
            provider_event_id="deleted-upstream",
        ))
        db_session.commit()
        events = [BusyEvent("evt-1", utc(future_monday, 10), utc(future_monday, 11))]

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=fake_gcal(events)):
            CalendarSyncService.resync(db_session, connection)

        assert [span[0] for span in interval_spans(db_session, connection)] == ["evt-1"]

    def test_revoked_credentials_expire_connection(self, db_session, doctor, add_rule, connection, future_monday):
        add_rule(doctor, 0, time(9), time(12))
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id, start_at=utc(future_monday, 9), end_at=utc(future_monday, 12),
        ))
        db_session.commit()
        expired_events = []
        NotificationService.register_handler(
            NotificationEvent.CONNECTION_EXPIRED, lambda e, payload: expired_events.append(payload)
        )
        gcal = fake_gcal(error=GoogleCalendarAuthError("invalid_grant"))

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            with pytest.raises(ConnectionExpired):
                CalendarSyncService.resync(db_session, connection)

        db_session.refresh(connection)
        assert connection.status == "expired"
        assert "invalid_grant" in connection.last_sync_error
        assert expired_events[0]["doctor_id"] == doctor.id
        slots = AvailabilityService.get_available_slots(db_session, doctor.id, future_monday, future_monday)
        assert len(slots[future_monday]) == 6

    def test_expired_connection_is_not_synced(self, db_session, connection):
        connection.status = "expired"
        db_session.commit()

        with patch.object(CalendarSyncService, 'build_calendar_service') as build:
            with pytest.raises(ConnectionExpired):
                CalendarSyncService.resync(db_session, connection)

        build.assert_not_called()

    def test_transient_failure_backs_off(self, db_session, connection, future_monday):
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id, start_at=utc(future_monday, 9), end_at=utc(future_monday, 10),
        ))
        db_session.commit()
        now = utc_now()
        gcal = fake_gcal(error=GoogleCalendarError("503 backend error"))

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            with pytest.raises(SyncError):
                CalendarSyncService.resync(db_session, connection, now=now)
            db_session.refresh(connection)
            assert connection.consecutive_failures == 1
            assert connection.next_sync_at.replace(tzinfo=None) == (now + timedelta(minutes=15)).replace(tzinfo=None)

            with pytest.raises(SyncError):
                CalendarSyncService.resync(db_session, connection, now=now)
            db_session.refresh(connection)
            assert connection.consecutive_failures == 2
            assert connection.next_sync_at.replace(tzinfo=None) == (now + timedelta(minutes=30)).replace(tzinfo=None)

        assert connection.status == "active"
        assert len(interval_spans(db_session, connection)) == 1

    def test_refreshed_token_is_stored(self, db_session, connection):
        gcal = fake_gcal()
        gcal.refreshed = True
        gcal.export_credentials.return_value = {"token": "new-access", "refresh_token": "refresh"}

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            CalendarSyncService.resync(db_session, connection)

        stored = get_encryption_service().decrypt_data(connection.encrypted_credentials)
        assert stored["token"] == "new-access"


class TestScheduledSync:
    def test_syncs_due_connections_independently(self, db_session, connection, future_monday):
        other_doctor = Doctor(display_name="Dr. Other", email="other@example.com", timezone="UTC")
        idle_doctor = Doctor(display_name="Dr. Idle", email="idle@example.com", timezone="UTC")
        db_session.add_all([other_doctor, idle_doctor])
        db_session.commit()
        failing = ExternalCalendarConnection(
            doctor_id=other_doctor.id,
            provider="google",
            calendar_id="primary",
            encrypted_credentials=connection.encrypted_credentials,
            status="active",
            sync_enabled=True,
        )
        not_due = ExternalCalendarConnection(
            doctor_id=idle_doctor.id,
            provider="google",
            calendar_id="work",
            encrypted_credentials=connection.encrypted_credentials,
            status="active",
            sync_enabled=True,
            next_sync_at=utc_now() + timedelta(hours=1),
        )
        db_session.add_all([failing, not_due])
        db_session.commit()
        failing_id = failing.id

        working = fake_gcal([BusyEvent("evt-1", utc(future_monday, 10), utc(future_monday, 11))])
        broken = fake_gcal(error=GoogleCalendarError("timeout"))

        def build(conn):
            return broken if conn.id == failing_id else working

        with patch.object(CalendarSyncService, 'build_calendar_service', side_effect=build):
            result = CalendarSyncService.sync_all_connections(get_db_context)

        assert result == {"synced": 1, "failed": 1}
        assert len(interval_spans(db_session, connection)) == 1
        db_session.refresh(failing)
        assert failing.consecutive_failures == 1
        working.list_busy_events.assert_called_once()
        assert broken.list_busy_events.call_count == 1

    def test_renews_expiring_channels(self, db_session, connection):
        connection.webhook_expiration = utc_now() + timedelta(hours=2)
        db_session.commit()
        gcal = fake_gcal()

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            result = CalendarSyncService.renew_expiring_channels(get_db_context)

        assert result == {"renewed": 1, "failed": 0}
        gcal.stop_channel.assert_called_once_with("channel-1", "resource-1")
        db_session.refresh(connection)
        assert connection.webhook_resource_id == "resource-new"
        assert connection.webhook_channel_id != "channel-1"

    def test_channels_far_from_expiry_are_left_alone(self, db_session, connection):
        with patch.object(CalendarSyncService, 'build_calendar_service') as build:
            result = CalendarSyncService.renew_expiring_channels(get_db_context)

        assert result == {"renewed": 0, "failed": 0}
        build.assert_not_called()


class TestConnectDisconnect:
    def test_connect_runs_initial_sync_and_registers_channel(self, db_session, doctor, future_monday):
        gcal = fake_gcal([BusyEvent("evt-1", utc(future_monday, 10), utc(future_monday, 11))])

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            connection = CalendarSyncService.connect_calendar(
                db_session, doctor.id, {"token": "access", "refresh_token": "refresh"}, "dr@gmail.com"
            )

        assert connection.status == "active"
        assert connection.last_synced_at is not None
        assert connection.webhook_resource_id == "resource-new"
        assert len(interval_spans(db_session, connection)) == 1

    def test_reconnect_reactivates_existing_row(self, db_session, doctor, connection):
        connection.status = "expired"
        db_session.commit()
        gcal = fake_gcal()

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            reconnected = CalendarSyncService.connect_calendar(db_session, doctor.id, {"token": "fresh"})

        assert reconnected.id == connection.id
        assert reconnected.status == "active"
        gcal.stop_channel.assert_called_once_with("channel-1", "resource-1")
        assert db_session.query(ExternalCalendarConnection).count() == 1

    def test_connect_survives_initial_sync_failure(self, db_session, doctor):
        gcal = fake_gcal(error=GoogleCalendarError("timeout"))

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            connection = CalendarSyncService.connect_calendar(db_session, doctor.id, {"token": "access"})

        assert connection.status == "active"
        assert connection.consecutive_failures == 1
        gcal.watch_calendar.assert_not_called()

    def test_two_doctors_sharing_one_calendar(self, db_session, doctor):
        colleague = Doctor(display_name="Dr. Colleague", email="colleague@example.com", timezone="UTC")
        db_session.add(colleague)
        db_session.commit()
        gcal = fake_gcal()
        gcal.watch_calendar.return_value = {
            "resource_id": "shared-calendar-resource",
            "expiration": utc_now() + timedelta(days=7),
        }

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            first = CalendarSyncService.connect_calendar(db_session, doctor.id, {"token": "a"}, calendar_id="team")
            second = CalendarSyncService.connect_calendar(db_session, colleague.id, {"token": "b"}, calendar_id="team")

        assert first.webhook_resource_id == "shared-calendar-resource"
        db_session.refresh(second)
        assert second.status == "active"
        assert second.last_synced_at is not None
        assert second.webhook_channel_id is None
        assert second.webhook_resource_id is None
        # The orphaned channel is stopped again
        gcal.stop_channel.assert_called_once()
        assert gcal.stop_channel.call_args.args[1] == "shared-calendar-resource"

    def test_renewal_continues_after_shared_resource_conflict(self, db_session, doctor, connection):
        colleague = Doctor(display_name="Dr. Colleague", email="colleague@example.com", timezone="UTC")
        db_session.add(colleague)
        db_session.commit()
        shared = ExternalCalendarConnection(
            doctor_id=colleague.id,
            provider="google",
            calendar_id="primary",
            encrypted_credentials=connection.encrypted_credentials,
            status="active",
            sync_enabled=True,
        )
        db_session.add(shared)
        db_session.commit()
        gcal = fake_gcal()
        gcal.watch_calendar.return_value = {
            "resource_id": "resource-1",
            "expiration": utc_now() + timedelta(days=7),
        }

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            result = CalendarSyncService.renew_expiring_channels(get_db_context)

        assert result == {"renewed": 0, "failed": 1}
        db_session.refresh(shared)
        assert shared.webhook_resource_id is None

    def test_disconnect_removes_busy_time(self, db_session, doctor, connection, future_monday):
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id, start_at=utc(future_monday, 9), end_at=utc(future_monday, 10),
        ))
        db_session.commit()

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=fake_gcal()):
            CalendarSyncService.disconnect_calendar(db_session, doctor.id)

        assert db_session.query(ExternalCalendarConnection).count() == 0
        assert db_session.query(ExternalBusyInterval).count() == 0


class TestGoogleCalendarWebhook:
    def test_notification_triggers_resync(self, client, connection, future_monday):
        gcal = fake_gcal([BusyEvent("evt-1", utc(future_monday, 10), utc(future_monday, 11))])

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            response = client.post("/api/webhooks/google-calendar", headers=WEBHOOK_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "synced": True, "events_processed": 1}

    def test_subscription_confirmation(self, client, connection):
        headers = {**WEBHOOK_HEADERS, "X-Goog-Resource-State": "sync"}

        with patch.object(CalendarSyncService, 'build_calendar_service') as build:
            response = client.post("/api/webhooks/google-calendar", headers=headers)

        assert response.json() == {"status": "ok"}
        build.assert_not_called()

    def test_unknown_channel_is_ignored(self, client, connection):
        headers = {**WEBHOOK_HEADERS, "X-Goog-Channel-ID": "stale-channel"}

        response = client.post("/api/webhooks/google-calendar", headers=headers)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}

    def test_missing_headers(self, client):
        response = client.post("/api/webhooks/google-calendar", headers={"X-Goog-Resource-State": "exists"})

        assert response.status_code == 400

    def test_sync_failure_is_still_acknowledged(self, client, connection):
        failures = []
        NotificationService.register_handler(NotificationEvent.SYNC_FAILED, lambda e, payload: failures.append(payload))
        gcal = fake_gcal(error=GoogleCalendarError("timeout"))

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            response = client.post("/api/webhooks/google-calendar", headers=WEBHOOK_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "synced": False}
        assert failures[0]["connection_id"] == connection.id


class TestCronSyncEndpoint:
    def test_requires_cron_secret(self, client):
        assert client.get("/api/cron/sync-calendars").status_code == 401
        wrong = client.get("/api/cron/sync-calendars", headers={"Authorization": "Bearer wrong"})
        assert wrong.status_code == 401

    def test_runs_scheduled_sync(self, client, connection):
        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=fake_gcal()):
            response = client.get("/api/cron/sync-calendars", headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 200
        assert response.json() == {"synced": 1, "failed": 0}

    def test_sync_runs_off_the_event_loop(self, client, connection):
        calls = []

        async def run_in_thread(func, *args, **kwargs):
            calls.append(func)
            return func(*args, **kwargs)

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=fake_gcal()), \
                patch("api.cron.asyncio.to_thread", side_effect=run_in_thread):
            response = client.get("/api/cron/sync-calendars", headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 200
        assert calls == [CalendarSyncService.sync_all_connections]


def pending_booking(db_session, doctor, patient, day, status="pending_payment"):
    booking = Booking(
        doctor_id=doctor.id,
        patient_id=patient.id,
        appointment_date=day,
        start_time=time(9),
        end_time=time(9, 30),
        consultation_type="video",
        status=status,
        patient_notes="Knee pain",
    )
    db_session.add(booking)
    db_session.commit()
    return booking


class TestBookingExport:
    def test_confirmed_booking_is_exported(self, db_session, doctor, patient, connection, future_monday):
        booking = pending_booking(db_session, doctor, patient, future_monday)
        gcal = fake_gcal()
        gcal.create_event.return_value = {"id": "gevent-1"}

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            BookingService.confirm_booking_payment(db_session, booking.id)

        db_session.refresh(booking)
        assert booking.status == "confirmed"
        assert booking.google_event_id == "gevent-1"
        kwargs = gcal.create_event.call_args.kwargs
        assert kwargs["summary"] == "Video appointment: Test Patient"
        assert kwargs["start"] == utc(future_monday, 9)
        assert kwargs["end"] == utc(future_monday, 9, 30)
        assert kwargs["booking_id"] == booking.id
        assert "Notes: Knee pain" in kwargs["description"]

    def test_export_uses_doctor_timezone(self, db_session, doctor, patient, connection, future_monday):
        doctor.timezone = "Asia/Tokyo"
        db_session.commit()
        booking = pending_booking(db_session, doctor, patient, future_monday)
        gcal = fake_gcal()
        gcal.create_event.return_value = {"id": "gevent-1"}

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            BookingService.confirm_booking_payment(db_session, booking.id)

        kwargs = gcal.create_event.call_args.kwargs
        # 09:00 in Tokyo is 00:00 UTC
        assert kwargs["start"] == utc(future_monday, 0)
        assert kwargs["time_zone"] == "Asia/Tokyo"

    def test_pending_approval_is_exported_once_approved(self, db_session, doctor, patient, connection, future_monday):
        doctor.requires_approval = True
        db_session.commit()
        booking = pending_booking(db_session, doctor, patient, future_monday)
        gcal = fake_gcal()
        gcal.create_event.return_value = {"id": "gevent-2"}

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            BookingService.confirm_booking_payment(db_session, booking.id)
            gcal.create_event.assert_not_called()
            BookingService.update_booking_status(db_session, booking.id, doctor.id, "approved")

        db_session.refresh(booking)
        assert booking.status == "approved"
        assert booking.google_event_id == "gevent-2"

    def test_export_failure_keeps_confirmation(self, db_session, doctor, patient, connection, future_monday):
        booking = pending_booking(db_session, doctor, patient, future_monday)
        gcal = fake_gcal()
        gcal.create_event.side_effect = GoogleCalendarError("backend error")

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            BookingService.confirm_booking_payment(db_session, booking.id)

        db_session.refresh(booking)
        assert booking.status == "confirmed"
        assert booking.google_event_id is None

    def test_no_export_while_sync_is_off(self, db_session, doctor, patient, connection, future_monday):
        connection.sync_enabled = False
        db_session.commit()
        booking = pending_booking(db_session, doctor, patient, future_monday)

        with patch.object(CalendarSyncService, 'build_calendar_service') as build:
            BookingService.confirm_booking_payment(db_session, booking.id)

        build.assert_not_called()

    def test_cancellation_removes_event(self, db_session, doctor, patient, connection, future_monday):
        booking = pending_booking(db_session, doctor, patient, future_monday, status="confirmed")
        booking.google_event_id = "gevent-3"
        db_session.commit()
        gcal = fake_gcal()

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            BookingService.cancel_booking(db_session, booking.id, "patient", patient.id)

        gcal.delete_event.assert_called_once_with("gevent-3")
        db_session.refresh(booking)
        assert booking.status == "cancelled_patient"
        assert booking.google_event_id is None

    def test_removal_failure_keeps_cancellation(self, db_session, doctor, patient, connection, future_monday):
        booking = pending_booking(db_session, doctor, patient, future_monday, status="confirmed")
        booking.google_event_id = "gevent-4"
        db_session.commit()
        gcal = fake_gcal()
        gcal.delete_event.side_effect = GoogleCalendarError("timeout")

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            BookingService.cancel_booking(db_session, booking.id, "doctor", doctor.id)

        db_session.refresh(booking)
        assert booking.status == "cancelled_doctor"
        assert booking.google_event_id == "gevent-4"


class TestCalendarSettings:
    def test_turning_sync_off_frees_busy_time(self, db_session, doctor, add_rule, connection, future_monday):
        add_rule(doctor, 0, time(9), time(12))
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id, start_at=utc(future_monday, 9), end_at=utc(future_monday, 12),
        ))
        db_session.commit()
        gcal = fake_gcal()

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            updated = CalendarSyncService.update_settings(db_session, doctor.id, sync_enabled=False)

        assert updated.sync_enabled is False
        assert updated.webhook_channel_id is None
        gcal.stop_channel.assert_called_once_with("channel-1", "resource-1")
        assert interval_spans(db_session, connection) == []
        slots = AvailabilityService.get_available_slots(db_session, doctor.id, future_monday, future_monday)
        assert len(slots[future_monday]) == 6

    def test_disabled_connection_is_not_pulled(self, db_session, doctor, connection):
        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=fake_gcal()):
            CalendarSyncService.update_settings(db_session, doctor.id, sync_enabled=False)

        with patch.object(CalendarSyncService, 'build_calendar_service') as build:
            result = CalendarSyncService.sync_all_connections(get_db_context)

        assert result == {"synced": 0, "failed": 0}
        build.assert_not_called()

    def test_switching_calendar_replaces_busy_time(self, db_session, doctor, connection, future_monday):
        db_session.add(ExternalBusyInterval(
            connection_id=connection.id,
            start_at=utc(future_monday, 9),
            end_at=utc(future_monday, 10),
            provider_event_id="from-old-calendar",
        ))
        connection.sync_token = "old-token"
        db_session.commit()
        gcal = fake_gcal([BusyEvent("from-new-calendar", utc(future_monday, 14), utc(future_monday, 15))])

        with patch.object(CalendarSyncService, 'build_calendar_service', return_value=gcal):
            updated = CalendarSyncService.update_settings(db_session, doctor.id, calendar_id="work")

        assert updated.calendar_id == "work"
        assert updated.sync_token == "token-2"
        assert updated.webhook_resource_id == "resource-new"
        assert [span[0] for span in interval_spans(db_session, connection)] == ["from-new-calendar"]

    def test_unchanged_settings_leave_channel_alone(self, db_session, doctor, connection):
        with patch.object(CalendarSyncService, 'build_calendar_service') as build:
            updated = CalendarSyncService.update_settings(db_session, doctor.id, sync_enabled=True, calendar_id="primary")

        build.assert_not_called()
        assert updated.webhook_channel_id == "channel-1"
