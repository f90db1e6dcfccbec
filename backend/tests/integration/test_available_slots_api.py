"""
Integration tests for the public available-slots endpoint.

Covers the full pipeline against the database: weekly rules, exceptions,
external busy time and held bookings.
"""

from datetime import datetime, time, timedelta, timezone

from core.constants import CONNECTION_STATUS_ACTIVE, CONNECTION_STATUS_EXPIRED
from models import AvailabilityException, Booking, ExternalBusyInterval, ExternalCalendarConnection

NINE_TO_NOON = ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]


def get_slots(client, doctor_id, date_from, date_to=None):
    return client.get(
        f"/api/doctors/{doctor_id}/available-slots",
        params={"date_from": date_from.isoformat(), "date_to": (date_to or date_from).isoformat()},
    )


def start_times(response, day):
    return [slot["start_time"] for slot in response.json()["slots"][day.isoformat()]]


def add_busy(db_session, doctor, start, end, status=CONNECTION_STATUS_ACTIVE):
    connection = ExternalCalendarConnection(doctor_id=doctor.id, provider="google", status=status)
    db_session.add(connection)
    db_session.flush()
    db_session.add(ExternalBusyInterval(connection_id=connection.id, start_at=start, end_at=end))
    db_session.commit()
    return connection


def test_weekly_rule_produces_slots(client, doctor, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))

    response = get_slots(client, doctor.id, future_monday)

    assert response.status_code == 200
    data = response.json()
    assert data["doctor_id"] == doctor.id
    assert data["timezone"] == "UTC"
    assert start_times(response, future_monday) == NINE_TO_NOON
    assert data["slots"][future_monday.isoformat()][0] == {
        "start_time": "09:00",
        "end_time": "09:30",
        "consultation_type": "video",
    }


def test_every_date_in_range_is_present(client, doctor, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))
    sunday = future_monday + timedelta(days=6)

    response = get_slots(client, doctor.id, future_monday, sunday)

    slots = response.json()["slots"]
    assert len(slots) == 7
    assert all(slots[(future_monday + timedelta(days=i)).isoformat()] == [] for i in range(1, 7))


def test_external_busy_time_removes_overlapping_slots(client, db_session, doctor, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))
    busy_start = datetime.combine(future_monday, time(10), tzinfo=timezone.utc)
    add_busy(db_session, doctor, busy_start, busy_start + timedelta(minutes=45))

    response = get_slots(client, doctor.id, future_monday)

    assert start_times(response, future_monday) == ["09:00", "09:30", "11:00", "11:30"]


def test_busy_time_of_expired_connection_is_ignored(client, db_session, doctor, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))
    busy_start = datetime.combine(future_monday, time(10), tzinfo=timezone.utc)
    add_busy(db_session, doctor, busy_start, busy_start + timedelta(hours=1), status=CONNECTION_STATUS_EXPIRED)

    response = get_slots(client, doctor.id, future_monday)

    assert start_times(response, future_monday) == NINE_TO_NOON


def test_active_booking_holds_its_slot(client, db_session, doctor, patient, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))
    db_session.add(Booking(
        doctor_id=doctor.id,
        patient_id=patient.id,
        appointment_date=future_monday,
        start_time=time(9, 30),
        end_time=time(10),
        consultation_type="video",
        status="confirmed",
    ))
    db_session.commit()

    response = get_slots(client, doctor.id, future_monday)

    assert "09:30" not in start_times(response, future_monday)
    assert len(start_times(response, future_monday)) == 5


def test_cancelled_booking_frees_its_slot(client, db_session, doctor, patient, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))
    db_session.add(Booking(
        doctor_id=doctor.id,
        patient_id=patient.id,
        appointment_date=future_monday,
        start_time=time(9, 30),
        end_time=time(10),
        consultation_type="video",
        status="cancelled_patient",
    ))
    db_session.commit()

    response = get_slots(client, doctor.id, future_monday)

    assert start_times(response, future_monday) == NINE_TO_NOON


def test_block_then_addition(client, db_session, doctor, add_rule, future_monday):
    """An all-day block removes the weekly hours; an addition on the same date still applies."""
    add_rule(doctor, 0, time(9), time(12))
    db_session.add_all([
        AvailabilityException(doctor_id=doctor.id, date=future_monday, kind="blocked"),
        AvailabilityException(
            doctor_id=doctor.id,
            date=future_monday,
            kind="added",
            start_time=time(15),
            end_time=time(16),
            consultation_type="in_person",
        ),
    ])
    db_session.commit()

    response = get_slots(client, doctor.id, future_monday)

    slots = response.json()["slots"][future_monday.isoformat()]
    assert [(s["start_time"], s["consultation_type"]) for s in slots] == [
        ("15:00", "in_person"),
        ("15:30", "in_person"),
    ]


def test_doctor_timezone_applies_to_busy_time(client, db_session, doctor, add_rule, future_monday):
    doctor.timezone = "Asia/Tokyo"
    db_session.commit()
    add_rule(doctor, 0, time(9), time(12))
    # 01:00 UTC is 10:00 in Tokyo
    busy_start = datetime.combine(future_monday, time(1), tzinfo=timezone.utc)
    add_busy(db_session, doctor, busy_start, busy_start + timedelta(minutes=30))

    response = get_slots(client, doctor.id, future_monday)

    assert response.json()["timezone"] == "Asia/Tokyo"
    assert start_times(response, future_monday) == ["09:00", "09:30", "10:30", "11:00", "11:30"]


def test_unverified_doctor_has_no_slots(client, db_session, doctor, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(12))
    doctor.is_verified = False
    db_session.commit()

    response = get_slots(client, doctor.id, future_monday)

    assert response.status_code == 200
    assert response.json()["slots"] == {future_monday.isoformat(): []}


def test_invalid_ranges(client, doctor, future_monday):
    reversed_range = get_slots(client, doctor.id, future_monday, future_monday - timedelta(days=1))
    assert reversed_range.status_code == 400
    assert reversed_range.json()["type"] == "validation_error"

    too_long = get_slots(client, doctor.id, future_monday, future_monday + timedelta(days=31))
    assert too_long.status_code == 400

    longest = get_slots(client, doctor.id, future_monday, future_monday + timedelta(days=30))
    assert longest.status_code == 200


def test_unknown_doctor(client, future_monday):
    response = get_slots(client, 99999, future_monday)
    assert response.status_code == 404
    assert response.json()["type"] == "not_found"


def test_overlapping_rules_of_different_types_never_offer_overlapping_slots(client, doctor, add_rule, future_monday):
    add_rule(doctor, 0, time(9), time(10), consultation_type="in_person")
    add_rule(doctor, 0, time(9, 15), time(10, 15), consultation_type="video")

    response = get_slots(client, doctor.id, future_monday)

    slots = response.json()["slots"][future_monday.isoformat()]
    assert [(s["start_time"], s["end_time"], s["consultation_type"]) for s in slots] == [
        ("09:00", "09:30", "in_person"),
        ("09:30", "10:00", "in_person"),
    ]
    for i, first in enumerate(slots):
        for second in slots[i + 1:]:
            assert first["end_time"] <= second["start_time"] or second["end_time"] <= first["start_time"]
