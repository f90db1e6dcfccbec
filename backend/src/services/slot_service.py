"""
Slot materialization.

Slices available windows into fixed-length slots and removes slots already
held by active bookings or starting too soon. Output is recomputed on every
request and never cached.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from core.constants import ACTIVE_BOOKING_STATUSES
from models import Booking
from shared_types.availability import Slot, WindowsByDate
from utils.datetime_utils import local_time_exists, to_doctor_local

logger = logging.getLogger(__name__)

HeldRange = Tuple[time, time]


def _blocking_end(offered: List[Tuple[int, int]], start: int, end: int, buffer_minutes: int) -> Optional[int]:
    """Latest end of the offered slots that [start, end) collides with, buffer included."""
    ends = [
        offered_end for offered_start, offered_end in offered
        if offered_start < end + buffer_minutes and start < offered_end + buffer_minutes
    ]
    return max(ends) if ends else None


class SlotMaterializer:
    """Fourth pipeline stage: windows to bookable slots."""

    @staticmethod
    def slice_windows(windows_by_date: WindowsByDate, duration_minutes: int, buffer_minutes: int = 0) -> Dict[date, List[Slot]]:
        """
        Slice each window into back-to-back slots.

        Slots are ``duration_minutes`` long with ``buffer_minutes`` left
        between consecutive slots; a trailing partial slot is discarded.
        Slots of one date never overlap, whatever their consultation type:
        where windows of different types overlap, the window starting first
        keeps the shared time and the other type's grid resumes after it.

        Args:
            windows_by_date: Available windows per date
            duration_minutes: Slot length (must be positive)
            buffer_minutes: Gap between slots (must not be negative)

        Returns:
            Mapping of date to slots ordered by start time
        """
        if duration_minutes <= 0:
            raise ValueError(f"Slot duration must be positive, got {duration_minutes}")
        if buffer_minutes < 0:
            raise ValueError(f"Buffer must not be negative, got {buffer_minutes}")

        step = duration_minutes + buffer_minutes
        result: Dict[date, List[Slot]] = {}
        for day, windows in windows_by_date.items():
            slots: List[Slot] = []
            offered: List[Tuple[int, int]] = []
            # Earlier windows claim their time first, so one booking can never
            # overlap a slot offered under another consultation type
            for window in sorted(windows, key=lambda w: (w.start_minute, w.consultation_type)):
                start = window.start_minute
                while start + duration_minutes <= window.end_minute:
                    end = start + duration_minutes
                    # A slot may not end at 24:00 in a time column
                    if end >= 24 * 60:
                        break
                    blocking_end = _blocking_end(offered, start, end, buffer_minutes)
                    if blocking_end is not None:
                        start = blocking_end + buffer_minutes
                        continue
                    slots.append(Slot.from_minutes(day, start, end, window.consultation_type))
                    offered.append((start, end))
                    start += step
            slots.sort(key=lambda s: (s.start_time, s.consultation_type))
            result[day] = slots
        return result

    @staticmethod
    def load_held_ranges(db: Session, doctor_id: int, date_from: date, date_to: date) -> Dict[date, List[HeldRange]]:
        """Fetch (start, end) times of the doctor's active bookings per date."""
        rows = db.query(Booking.appointment_date, Booking.start_time, Booking.end_time).filter(
            Booking.doctor_id == doctor_id,
            Booking.appointment_date >= date_from,
            Booking.appointment_date <= date_to,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES)
        ).all()

        held: Dict[date, List[HeldRange]] = {}
        for row in rows:
            held.setdefault(row.appointment_date, []).append((row.start_time, row.end_time))
        return held

    @staticmethod
    def remove_held(slots_by_date: Dict[date, List[Slot]], held: Dict[date, List[HeldRange]]) -> Dict[date, List[Slot]]:
        """
        Drop slots that start at, or overlap, an active booking.

        Overlap matters when a doctor changes slot duration after bookings
        were made, so an old booking no longer lines up with the new grid.
        """
        result: Dict[date, List[Slot]] = {}
        for day, slots in slots_by_date.items():
            day_held = held.get(day)
            if not day_held:
                result[day] = list(slots)
                continue
            result[day] = [
                slot for slot in slots
                if not any(slot.start_time == start or slot.overlaps(start, end) for start, end in day_held)
            ]
        return result

    @staticmethod
    def remove_too_soon(
        slots_by_date: Dict[date, List[Slot]],
        now: datetime,
        tz_name: str,
        minimum_notice_minutes: int = 0
    ) -> Dict[date, List[Slot]]:
        """Drop slots starting before ``now + minimum_notice_minutes`` in doctor local time."""
        cutoff = to_doctor_local(now, tz_name).replace(tzinfo=None) + timedelta(minutes=minimum_notice_minutes)
        return {
            day: [slot for slot in slots if datetime.combine(day, slot.start_time) >= cutoff]
            for day, slots in slots_by_date.items()
        }

    @staticmethod
    def remove_nonexistent(slots_by_date: Dict[date, List[Slot]], tz_name: str) -> Dict[date, List[Slot]]:
        """Drop slots whose local start falls into a DST gap."""
        result: Dict[date, List[Slot]] = {}
        for day, slots in slots_by_date.items():
            kept = [slot for slot in slots if local_time_exists(day, slot.start_time, tz_name)]
            if len(kept) != len(slots):
                logger.debug(f"Dropped {len(slots) - len(kept)} slots skipped by a DST change on {day} ({tz_name})")
            result[day] = kept
        return result

    @staticmethod
    def materialize(
        windows_by_date: WindowsByDate,
        duration_minutes: int,
        buffer_minutes: int,
        held: Dict[date, List[HeldRange]],
        now: Optional[datetime] = None,
        tz_name: str = "UTC",
        minimum_notice_minutes: int = 0
    ) -> Dict[date, List[Slot]]:
        """Slice windows, drop nonexistent and held slots and, when ``now`` is given, past ones."""
        slots = SlotMaterializer.slice_windows(windows_by_date, duration_minutes, buffer_minutes)
        slots = SlotMaterializer.remove_nonexistent(slots, tz_name)
        slots = SlotMaterializer.remove_held(slots, held)
        if now is not None:
            slots = SlotMaterializer.remove_too_soon(slots, now, tz_name, minimum_notice_minutes)
        return slots
