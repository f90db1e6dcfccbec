"""
Doctor model representing a bookable healthcare provider.

A doctor owns a weekly availability schedule, one-off availability exceptions,
an optional external calendar connection and the bookings made against them.
"""

from datetime import datetime
from typing import List

from sqlalchemy import Boolean, Integer, String, TIMESTAMP, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import DEFAULT_BUFFER_MINUTES, DEFAULT_SLOT_DURATION_MINUTES, MAX_STRING_LENGTH
from core.database import Base


class Doctor(Base):
    """
    Doctor entity.

    Appointment dates and times for a doctor are wall-clock values in the
    doctor's own ``timezone``; external busy intervals are converted into that
    timezone before they are subtracted from availability.
    """

    __tablename__ = "doctors"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the doctor."""

    display_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Name shown to patients."""

    email: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH), unique=True)
    """Login email of the doctor."""

    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    """IANA timezone name used to interpret schedule times (e.g. 'Europe/London')."""

    slot_duration_minutes: Mapped[int] = mapped_column(Integer, default=DEFAULT_SLOT_DURATION_MINUTES, nullable=False)
    """Length of each bookable slot."""

    buffer_minutes: Mapped[int] = mapped_column(Integer, default=DEFAULT_BUFFER_MINUTES, nullable=False)
    """Gap left between consecutive slots."""

    minimum_notice_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    """Slots starting sooner than this from now are not offered."""

    requires_approval: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """
    When True, paid bookings move to 'pending_approval' instead of 'confirmed'
    and wait for the doctor to approve or reject them.
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Whether the doctor is currently accepting bookings."""

    is_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """Whether the doctor's credentials were verified by an administrator."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the doctor was created."""

    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the doctor was last updated."""

    # Relationships
    availability_rules: Mapped[List["WeeklyAvailabilityRule"]] = relationship(  # noqa: F821
        "WeeklyAvailabilityRule", back_populates="doctor", cascade="all, delete-orphan"
    )
    availability_exceptions: Mapped[List["AvailabilityException"]] = relationship(  # noqa: F821
        "AvailabilityException", back_populates="doctor", cascade="all, delete-orphan"
    )
    calendar_connections: Mapped[List["ExternalCalendarConnection"]] = relationship(  # noqa: F821
        "ExternalCalendarConnection", back_populates="doctor", cascade="all, delete-orphan"
    )
    bookings: Mapped[List["Booking"]] = relationship("Booking", back_populates="doctor")  # noqa: F821

    __table_args__ = (
        Index('idx_doctors_active_verified', 'is_active', 'is_verified'),
    )

    @property
    def is_bookable(self) -> bool:
        """Check if patients may book this doctor."""
        return self.is_active and self.is_verified

    def __repr__(self) -> str:
        return f"<Doctor(id={self.id}, email='{self.email}', timezone='{self.timezone}')>"
