"""
Availability service: the read side of the booking engine.

Runs the availability pipeline for a doctor and date range:

    weekly rules -> exceptions (blocks, then additions) -> external busy time
    -> slicing -> held bookings -> minimum notice

Each stage takes and returns the same per-date windows shape, and all of
them are recomputed on every call.
"""

import logging
from datetime import date, datetime, time
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from core.constants import MAX_AVAILABILITY_RANGE_DAYS
from core.exceptions import NotFoundError, ValidationError
from models import Doctor
from services.calendar_overlay_service import CalendarOverlayService
from services.exception_merger import ExceptionMerger
from services.recurrence_service import RecurrenceExpander, iter_dates
from services.slot_service import SlotMaterializer
from shared_types.availability import Slot, WindowsByDate
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Service class for availability operations.

    Shared by the public availability endpoint and the booking arbiter, so
    both observe the same slot state.
    """

    @staticmethod
    def validate_date_range(date_from: date, date_to: date) -> None:
        """
        Validate a requested date range.

        Raises:
            ValidationError: If the range is reversed or too long
        """
        if date_to < date_from:
            raise ValidationError("date_to must not be before date_from")
        if (date_to - date_from).days + 1 > MAX_AVAILABILITY_RANGE_DAYS:
            raise ValidationError(f"Date range cannot exceed {MAX_AVAILABILITY_RANGE_DAYS} days")

    @staticmethod
    def get_doctor(db: Session, doctor_id: int) -> Doctor:
        """
        Get a doctor by ID.

        Raises:
            NotFoundError: If the doctor does not exist
        """
        doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
        if not doctor:
            raise NotFoundError(f"Doctor {doctor_id} not found")
        return doctor

    @staticmethod
    def compute_windows(db: Session, doctor: Doctor, date_from: date, date_to: date) -> WindowsByDate:
        """Run the window stages (recurrence, exceptions, external overlay)."""
        windows = RecurrenceExpander.expand_for_doctor(db, doctor.id, date_from, date_to)

        exceptions = ExceptionMerger.load_exceptions(db, doctor.id, date_from, date_to)
        windows = ExceptionMerger.apply(windows, exceptions)

        busy = CalendarOverlayService.load_busy_intervals(db, doctor.id, date_from, date_to, doctor.timezone)
        return CalendarOverlayService.apply(windows, busy, doctor.timezone)

    @staticmethod
    def get_available_slots(
        db: Session,
        doctor_id: int,
        date_from: date,
        date_to: date,
        now: Optional[datetime] = None
    ) -> Dict[date, List[Slot]]:
        """
        Compute bookable slots for a doctor.

        Every date in the range is present in the result. A doctor who is
        inactive or unverified has no slots.

        Args:
            db: Database session
            doctor_id: Doctor ID
            date_from: First date (inclusive, doctor local)
            date_to: Last date (inclusive, doctor local)
            now: Reference instant for the minimum-notice filter (defaults to now)

        Returns:
            Mapping of date to slots ordered by start time

        Raises:
            ValidationError: If the date range is invalid
            NotFoundError: If the doctor does not exist
        """
        AvailabilityService.validate_date_range(date_from, date_to)
        doctor = AvailabilityService.get_doctor(db, doctor_id)

        if not doctor.is_bookable:
            logger.info(f"Doctor {doctor_id} is not bookable, returning no availability")
            return {day: [] for day in iter_dates(date_from, date_to)}

        windows = AvailabilityService.compute_windows(db, doctor, date_from, date_to)
        held = SlotMaterializer.load_held_ranges(db, doctor.id, date_from, date_to)

        return SlotMaterializer.materialize(
            windows,
            doctor.slot_duration_minutes,
            doctor.buffer_minutes,
            held,
            now=now or utc_now(),
            tz_name=doctor.timezone,
            minimum_notice_minutes=doctor.minimum_notice_minutes,
        )

    @staticmethod
    def find_slot(
        db: Session,
        doctor_id: int,
        day: date,
        start_time: time,
        consultation_type: str,
        now: Optional[datetime] = None
    ) -> Optional[Slot]:
        """Return the open slot starting at ``start_time`` on ``day``, if any."""
        slots = AvailabilityService.get_available_slots(db, doctor_id, day, day, now=now)
        for slot in slots.get(day, []):
            if slot.matches(day, start_time) and slot.consultation_type == consultation_type:
                return slot
        return None

    @staticmethod
    def to_response(slots_by_date: Dict[date, List[Slot]]) -> Dict[str, List[Dict[str, str]]]:
        """Serialize slots keyed by ISO date."""
        return {
            day.isoformat(): [slot.to_dict() for slot in slots]
            for day, slots in sorted(slots_by_date.items())
        }
