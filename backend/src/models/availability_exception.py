"""
Availability exception model for one-off changes to a doctor's schedule.

An exception either blocks time (holiday, meeting) or adds time outside the
weekly schedule. Exceptions always take precedence over weekly rules for
their date.
"""

from datetime import date as date_type, datetime, time
from typing import Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Time, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import EXCEPTION_KIND_ADDED, EXCEPTION_KIND_BLOCKED, MAX_STRING_LENGTH
from core.database import Base


class AvailabilityException(Base):
    """
    Availability exception entity.

    Multiple exceptions per day are allowed, and overlapping exceptions are
    permitted.
    """

    __tablename__ = "availability_exceptions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the availability exception."""

    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    """Reference to the doctor owning the exception."""

    date: Mapped[date_type] = mapped_column(Date)
    """Date the exception applies to (doctor local date)."""

    kind: Mapped[str] = mapped_column(String(20))
    """
    Kind of exception. Valid values:
    - 'blocked': time removed from availability
    - 'added': extra availability outside the weekly schedule
    """

    start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    """Start time of the exception. Null (with end_time) means the whole day."""

    end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    """End time of the exception. Null (with start_time) means the whole day."""

    consultation_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    """
    Consultation type affected. Null on a block means every type; required
    on an addition.
    """

    reason: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Optional free-text reason shown to the doctor."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    doctor = relationship("Doctor", back_populates="availability_exceptions")

    __table_args__ = (
        CheckConstraint("kind IN ('blocked', 'added')", name='check_exception_kind'),
        CheckConstraint(
            "(start_time IS NULL AND end_time IS NULL) OR "
            "(start_time IS NOT NULL AND end_time IS NOT NULL AND start_time < end_time)",
            name='check_exception_time_range'
        ),
        CheckConstraint(
            "kind = 'blocked' OR (start_time IS NOT NULL AND consultation_type IS NOT NULL)",
            name='check_exception_addition_fields'
        ),
        Index('idx_availability_exceptions_doctor_date', 'doctor_id', 'date'),
    )

    @property
    def is_all_day(self) -> bool:
        """Check if this is a whole-day exception."""
        return self.start_time is None or self.end_time is None

    @property
    def is_block(self) -> bool:
        return self.kind == EXCEPTION_KIND_BLOCKED

    @property
    def is_addition(self) -> bool:
        return self.kind == EXCEPTION_KIND_ADDED

    def __repr__(self) -> str:
        return (
            f"<AvailabilityException(id={self.id}, doctor_id={self.doctor_id}, kind={self.kind}, "
            f"date={self.date}, time={self.start_time}-{self.end_time})>"
        )
