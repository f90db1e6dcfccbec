"""
Booking model representing a patient's claim on a doctor's slot.

Bookings are the only persisted form of a slot. At most one booking per
(doctor, date, start time) may be in an active status at any time; the
database enforces this with a partial unique index so concurrent requests
for the same slot cannot both succeed.
"""

from datetime import date as date_type, datetime, time
from typing import Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Time, TIMESTAMP, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import (
    ACTIVE_BOOKING_STATUSES,
    BOOKING_STATUS_PENDING_PAYMENT,
    BOOKING_STATUSES,
    MAX_CANCELLATION_REASON_LENGTH,
    MAX_PATIENT_NOTES_LENGTH,
)
from core.database import Base


def _status_list(statuses: tuple[str, ...]) -> str:
    return ", ".join(f"'{status}'" for status in statuses)


ACTIVE_STATUS_PREDICATE = f"status IN ({_status_list(ACTIVE_BOOKING_STATUSES)})"


class Booking(Base):
    """
    Booking entity.

    ``appointment_date``, ``start_time`` and ``end_time`` are wall-clock
    values in the doctor's timezone. Expired 'pending_payment' bookings are
    hard-deleted rather than moved to a terminal status.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the booking."""

    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id"))
    """Reference to the booked doctor."""

    patient_id: Mapped[int] = mapped_column(ForeignKey("patients.id"))
    """Reference to the patient who made the booking."""

    appointment_date: Mapped[date_type] = mapped_column(Date)
    """Date of the appointment (doctor local date)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start time of the appointment (doctor local time)."""

    end_time: Mapped[time] = mapped_column(Time)
    """End time of the appointment (doctor local time)."""

    consultation_type: Mapped[str] = mapped_column(String(20))
    """Consultation type: 'in_person' or 'video'."""

    status: Mapped[str] = mapped_column(String(30), default=BOOKING_STATUS_PENDING_PAYMENT, nullable=False)
    """
    Current status. Active statuses ('pending_payment', 'confirmed',
    'pending_approval', 'approved') hold the slot; every other status
    releases it.
    """

    patient_notes: Mapped[Optional[str]] = mapped_column(String(MAX_PATIENT_NOTES_LENGTH), nullable=True)
    """Optional notes from the patient."""

    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(MAX_CANCELLATION_REASON_LENGTH), nullable=True)
    """Reason given when the booking was cancelled or rejected."""

    google_event_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Event created in the doctor's Google Calendar once the booking was confirmed."""

    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the booking was created; drives pending-payment expiry."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    doctor = relationship("Doctor", back_populates="bookings")
    patient = relationship("Patient", back_populates="bookings")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name='check_booking_time_range'),
        CheckConstraint(f"status IN ({_status_list(BOOKING_STATUSES)})", name='check_booking_status'),
        CheckConstraint("consultation_type IN ('in_person', 'video')", name='check_booking_consultation_type'),
        # One active booking per doctor slot
        Index(
            'uq_bookings_active_slot',
            'doctor_id', 'appointment_date', 'start_time',
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_PREDICATE),
            sqlite_where=text(ACTIVE_STATUS_PREDICATE),
        ),
        Index('idx_bookings_doctor_date', 'doctor_id', 'appointment_date'),
        Index('idx_bookings_status_created', 'status', 'created_at'),
        Index('idx_bookings_patient', 'patient_id'),
    )

    @property
    def is_active(self) -> bool:
        """Check if the booking currently holds its slot."""
        return self.status in ACTIVE_BOOKING_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, doctor_id={self.doctor_id}, patient_id={self.patient_id}, "
            f"date={self.appointment_date}, time={self.start_time}-{self.end_time}, status={self.status})>"
        )
