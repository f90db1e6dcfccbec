"""
Weekly availability rule model for a doctor's recurring schedule.

Doctors can define multiple working periods per day and per consultation type
(e.g. in-person 09:00-12:00 and video 14:00-17:00 on Mondays). Overlapping
rules for the same day and type are allowed and are unioned on expansion.
"""

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Index, String, Time, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import CONSULTATION_TYPE_IN_PERSON, MAX_STRING_LENGTH
from core.database import Base


class WeeklyAvailabilityRule(Base):
    """
    One recurring working period on a given day of the week.

    ``effective_from``/``effective_until`` bound the dates on which the rule
    applies; a null bound is open-ended.
    """

    __tablename__ = "weekly_availability_rules"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the rule."""

    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    """Reference to the doctor owning the rule."""

    day_of_week: Mapped[int] = mapped_column()
    """Day of the week (0=Monday, 1=Tuesday, ..., 6=Sunday)."""

    start_time: Mapped[time] = mapped_column(Time)
    """Start time of the working period (doctor local time)."""

    end_time: Mapped[time] = mapped_column(Time)
    """End time of the working period (doctor local time)."""

    consultation_type: Mapped[str] = mapped_column(String(20), default=CONSULTATION_TYPE_IN_PERSON)
    """Consultation type offered during this period: 'in_person' or 'video'."""

    location: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Optional practice location reference for in-person consultations."""

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Inactive rules are kept but ignored by availability calculation."""

    effective_from: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """First date on which the rule applies (inclusive)."""

    effective_until: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    """Last date on which the rule applies (inclusive)."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    doctor = relationship("Doctor", back_populates="availability_rules")

    __table_args__ = (
        CheckConstraint("start_time < end_time", name='check_rule_time_range'),
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name='check_rule_day_of_week'),
        CheckConstraint("consultation_type IN ('in_person', 'video')", name='check_rule_consultation_type'),
        Index('idx_weekly_rules_doctor_day', 'doctor_id', 'day_of_week'),
    )

    def applies_on(self, day: date) -> bool:
        """Check if the rule is active and effective on the given date."""
        if not self.is_active or day.weekday() != self.day_of_week:
            return False
        if self.effective_from is not None and day < self.effective_from:
            return False
        if self.effective_until is not None and day > self.effective_until:
            return False
        return True

    def __repr__(self) -> str:
        return (
            f"<WeeklyAvailabilityRule(id={self.id}, doctor_id={self.doctor_id}, "
            f"day={self.day_of_week}, time={self.start_time}-{self.end_time}, type={self.consultation_type})>"
        )
