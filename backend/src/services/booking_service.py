"""
Booking service: the write side of the booking engine.

Creating a booking re-validates the requested slot against freshly computed
availability and then inserts it. Two patients racing for the same slot can
both pass the availability check; the partial unique index on active
bookings makes the insert itself the serialization point, so exactly one
commit succeeds and the other is turned into ``SlotAlreadyTaken``.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.constants import (
    BOOKING_STATUS_APPROVED,
    BOOKING_STATUS_CANCELLED_DOCTOR,
    BOOKING_STATUS_CANCELLED_PATIENT,
    BOOKING_STATUS_COMPLETED,
    BOOKING_STATUS_CONFIRMED,
    BOOKING_STATUS_PENDING_APPROVAL,
    BOOKING_STATUS_PENDING_PAYMENT,
    BOOKING_STATUS_REJECTED,
    CANCELLABLE_BOOKING_STATUSES,
    CONSULTATION_TYPES,
    DOCTOR_BOOKING_TRANSITIONS,
    MAX_CANCELLATION_REASON_LENGTH,
    MAX_PATIENT_NOTES_LENGTH,
    PENDING_PAYMENT_TTL_MINUTES,
)
from core.exceptions import (
    InvalidStatusTransition,
    NotFoundError,
    SlotAlreadyTaken,
    Unauthorized,
    ValidationError,
)
from models import Booking, Patient
from services.availability_service import AvailabilityService
from services.calendar_sync_service import CalendarSyncService
from services.notification_service import NotificationEvent, NotificationService
from utils.datetime_utils import format_time, utc_now

logger = logging.getLogger(__name__)

CANCELLED_BY_PATIENT = "patient"
CANCELLED_BY_DOCTOR = "doctor"


def _booking_payload(booking: Booking) -> Dict[str, Any]:
    return {
        "booking_id": booking.id,
        "doctor_id": booking.doctor_id,
        "patient_id": booking.patient_id,
        "date": booking.appointment_date.isoformat(),
        "start_time": format_time(booking.start_time),
        "end_time": format_time(booking.end_time),
        "consultation_type": booking.consultation_type,
        "status": booking.status,
    }


class BookingService:
    """
    Service class for booking operations.

    Methods commit their own transaction. Notification events are emitted
    only after the commit succeeded. Confirmed and approved bookings are then
    mirrored to the doctor's Google Calendar, and cancelled ones removed from
    it; a calendar failure never undoes the booking change.
    """

    @staticmethod
    def _validate_request(
        appointment_date: Optional[date],
        start_time: Optional[time],
        end_time: Optional[time],
        consultation_type: str,
        patient_notes: Optional[str]
    ) -> None:
        """Reject malformed requests before touching the datastore."""
        if appointment_date is None or start_time is None or end_time is None:
            raise ValidationError("Date, start time and end time are required")
        if start_time >= end_time:
            raise ValidationError("Start time must be before end time")
        if consultation_type not in CONSULTATION_TYPES:
            raise ValidationError(f"Invalid consultation type: {consultation_type}")
        if patient_notes is not None and len(patient_notes) > MAX_PATIENT_NOTES_LENGTH:
            raise ValidationError(f"Notes cannot exceed {MAX_PATIENT_NOTES_LENGTH} characters")

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Booking:
        """
        Get a booking by ID.

        Raises:
            NotFoundError: If the booking does not exist
        """
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if not booking:
            raise NotFoundError(f"Booking {booking_id} not found")
        return booking

    @staticmethod
    def create_booking(
        db: Session,
        doctor_id: int,
        patient_id: int,
        appointment_date: date,
        start_time: time,
        end_time: time,
        consultation_type: str,
        patient_notes: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Claim a slot for a patient.

        The slot must be present in the doctor's current availability. The
        booking is created in 'pending_payment'; the payment webhook later
        promotes it.

        Args:
            db: Database session
            doctor_id: Doctor to book
            patient_id: Patient making the booking
            appointment_date: Slot date (doctor local)
            start_time: Slot start (doctor local)
            end_time: Slot end (doctor local)
            consultation_type: 'in_person' or 'video'
            patient_notes: Optional notes from the patient
            now: Reference instant for availability (defaults to now)

        Returns:
            The created booking

        Raises:
            ValidationError: If the request is malformed or the doctor is not bookable
            NotFoundError: If the doctor or patient does not exist
            SlotAlreadyTaken: If the slot is no longer available
        """
        BookingService._validate_request(appointment_date, start_time, end_time, consultation_type, patient_notes)

        doctor = AvailabilityService.get_doctor(db, doctor_id)
        if not doctor.is_bookable:
            raise ValidationError("This doctor is not accepting bookings")

        patient = db.query(Patient).filter(Patient.id == patient_id).first()
        if not patient:
            raise NotFoundError(f"Patient {patient_id} not found")

        conflict_payload = {
            "doctor_id": doctor_id,
            "patient_id": patient_id,
            "date": appointment_date.isoformat(),
            "start_time": format_time(start_time),
        }

        slot = AvailabilityService.find_slot(db, doctor_id, appointment_date, start_time, consultation_type, now=now)
        if slot is None:
            logger.info(f"Slot {appointment_date} {start_time} for doctor {doctor_id} is not available")
            NotificationService.emit(NotificationEvent.SLOT_CONFLICT, conflict_payload)
            raise SlotAlreadyTaken()
        if slot.end_time != end_time:
            raise ValidationError(
                f"End time must be {format_time(slot.end_time)} for a slot starting at {format_time(start_time)}"
            )

        booking = Booking(
            doctor_id=doctor_id,
            patient_id=patient_id,
            appointment_date=appointment_date,
            start_time=start_time,
            end_time=end_time,
            consultation_type=consultation_type,
            status=BOOKING_STATUS_PENDING_PAYMENT,
            patient_notes=patient_notes.strip() if patient_notes else None,
        )

        try:
            db.add(booking)
            db.commit()
        except IntegrityError as e:
            # Another active booking took the slot after our availability check
            logger.warning(f"Booking conflict for doctor {doctor_id} at {appointment_date} {start_time}: {e}")
            db.rollback()
            NotificationService.emit(NotificationEvent.SLOT_CONFLICT, conflict_payload)
            raise SlotAlreadyTaken()

        logger.info(f"Created booking {booking.id} for doctor {doctor_id} at {appointment_date} {start_time}")
        NotificationService.emit(NotificationEvent.BOOKING_CREATED, _booking_payload(booking))
        return booking

    @staticmethod
    def confirm_booking_payment(db: Session, booking_id: int, now: Optional[datetime] = None) -> Booking:
        """
        Promote a paid booking.

        Moves 'pending_payment' to 'pending_approval' when the doctor
        reviews bookings, otherwise to 'confirmed'. Re-delivered payment
        confirmations for an already promoted booking are no-ops.

        Raises:
            NotFoundError: If the booking does not exist (e.g. it already expired)
            InvalidStatusTransition: If the booking is in any other status
        """
        booking = BookingService.get_booking(db, booking_id)

        if booking.status in (BOOKING_STATUS_CONFIRMED, BOOKING_STATUS_PENDING_APPROVAL):
            logger.info(f"Booking {booking_id} payment already confirmed (status={booking.status})")
            return booking
        if booking.status != BOOKING_STATUS_PENDING_PAYMENT:
            raise InvalidStatusTransition(f"Cannot confirm payment for a booking in status '{booking.status}'")

        if booking.doctor.requires_approval:
            booking.status = BOOKING_STATUS_PENDING_APPROVAL
            event = NotificationEvent.BOOKING_PENDING_APPROVAL
        else:
            booking.status = BOOKING_STATUS_CONFIRMED
            booking.confirmed_at = now or utc_now()
            event = NotificationEvent.BOOKING_CONFIRMED

        db.commit()
        logger.info(f"Booking {booking_id} payment confirmed, status is now {booking.status}")
        NotificationService.emit(event, _booking_payload(booking))
        if booking.status == BOOKING_STATUS_CONFIRMED:
            CalendarSyncService.export_booking(db, booking)
        return booking

    @staticmethod
    def fail_booking_payment(db: Session, booking_id: int) -> bool:
        """
        Release the slot of a booking whose payment failed.

        Returns:
            True if a 'pending_payment' booking was deleted, False if there
            was nothing to delete
        """
        deleted = db.query(Booking).filter(
            Booking.id == booking_id,
            Booking.status == BOOKING_STATUS_PENDING_PAYMENT
        ).delete(synchronize_session=False)
        db.commit()

        if deleted:
            logger.info(f"Deleted booking {booking_id} after failed payment")
        else:
            logger.info(f"No pending booking {booking_id} to delete after failed payment")
        return bool(deleted)

    @staticmethod
    def cancel_booking(
        db: Session,
        booking_id: int,
        cancelled_by: str,
        actor_id: int,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Cancel a booking on behalf of its patient or its doctor.

        Args:
            db: Database session
            booking_id: Booking to cancel
            cancelled_by: 'patient' or 'doctor'
            actor_id: Patient ID or doctor ID of the caller
            reason: Optional cancellation reason
            now: Cancellation timestamp (defaults to now)

        Raises:
            ValidationError: If cancelled_by or reason is invalid
            NotFoundError: If the booking does not exist
            Unauthorized: If the caller does not own the booking
            InvalidStatusTransition: If the booking cannot be cancelled
        """
        if cancelled_by not in (CANCELLED_BY_PATIENT, CANCELLED_BY_DOCTOR):
            raise ValidationError(f"Invalid cancellation source: {cancelled_by}")
        if reason is not None and len(reason) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValidationError(f"Reason cannot exceed {MAX_CANCELLATION_REASON_LENGTH} characters")

        booking = BookingService.get_booking(db, booking_id)

        owner_id = booking.patient_id if cancelled_by == CANCELLED_BY_PATIENT else booking.doctor_id
        if owner_id != actor_id:
            raise Unauthorized("You cannot cancel this booking")

        if booking.status not in CANCELLABLE_BOOKING_STATUSES:
            raise InvalidStatusTransition(f"Cannot cancel a booking in status '{booking.status}'")

        booking.status = (
            BOOKING_STATUS_CANCELLED_PATIENT if cancelled_by == CANCELLED_BY_PATIENT
            else BOOKING_STATUS_CANCELLED_DOCTOR
        )
        booking.cancelled_at = now or utc_now()
        booking.cancellation_reason = reason.strip() if reason else None
        db.commit()

        logger.info(f"Booking {booking_id} cancelled by {cancelled_by} {actor_id}")
        NotificationService.emit(NotificationEvent.BOOKING_CANCELLED, {
            **_booking_payload(booking),
            "cancelled_by": cancelled_by,
            "reason": booking.cancellation_reason,
        })
        CalendarSyncService.remove_booking_event(db, booking)
        return booking

    @staticmethod
    def update_booking_status(
        db: Session,
        booking_id: int,
        doctor_id: int,
        new_status: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Booking:
        """
        Apply a doctor-driven status change (approve, reject, complete, no-show, refund).

        Raises:
            NotFoundError: If the booking does not exist
            Unauthorized: If the booking belongs to another doctor
            InvalidStatusTransition: If the transition is not allowed
        """
        if reason is not None and len(reason) > MAX_CANCELLATION_REASON_LENGTH:
            raise ValidationError(f"Reason cannot exceed {MAX_CANCELLATION_REASON_LENGTH} characters")

        booking = BookingService.get_booking(db, booking_id)
        if booking.doctor_id != doctor_id:
            raise Unauthorized("You cannot update this booking")

        allowed = DOCTOR_BOOKING_TRANSITIONS.get(booking.status, ())
        if new_status not in allowed:
            raise InvalidStatusTransition(f"Cannot change booking from '{booking.status}' to '{new_status}'")

        previous_status = booking.status
        booking.status = new_status
        timestamp = now or utc_now()
        if new_status == BOOKING_STATUS_COMPLETED:
            booking.completed_at = timestamp
        elif new_status == BOOKING_STATUS_REJECTED:
            booking.cancellation_reason = reason.strip() if reason else None
            booking.cancelled_at = timestamp
        elif new_status == BOOKING_STATUS_APPROVED:
            booking.confirmed_at = timestamp
        db.commit()

        logger.info(f"Booking {booking_id} status changed {previous_status} -> {new_status} by doctor {doctor_id}")
        NotificationService.emit(NotificationEvent.BOOKING_STATUS_CHANGED, {
            **_booking_payload(booking),
            "previous_status": previous_status,
        })
        if new_status == BOOKING_STATUS_APPROVED:
            CalendarSyncService.export_booking(db, booking)
        return booking

    @staticmethod
    def expire_pending_bookings(db: Session, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Hard-delete bookings left in 'pending_payment' past the TTL.

        Safe to run repeatedly and concurrently: the delete re-checks status
        and age, so a booking is removed at most once and a second run for
        the same boundary removes nothing.

        Returns:
            Dict with 'expired_count'
        """
        cutoff = (now or utc_now()) - timedelta(minutes=PENDING_PAYMENT_TTL_MINUTES)

        expired = db.query(Booking).filter(
            Booking.status == BOOKING_STATUS_PENDING_PAYMENT,
            Booking.created_at < cutoff
        ).all()

        deleted_payloads = []
        for booking in expired:
            payload = _booking_payload(booking)
            # Another reaper run may have deleted it already
            deleted = db.query(Booking).filter(
                Booking.id == booking.id,
                Booking.status == BOOKING_STATUS_PENDING_PAYMENT,
                Booking.created_at < cutoff
            ).delete(synchronize_session=False)
            if deleted:
                deleted_payloads.append(payload)
        db.commit()

        if deleted_payloads:
            logger.info(f"Expired {len(deleted_payloads)} pending-payment bookings created before {cutoff.isoformat()}")
            for payload in deleted_payloads:
                NotificationService.emit(NotificationEvent.BOOKING_EXPIRED, payload)

        return {"expired_count": len(deleted_payloads)}
