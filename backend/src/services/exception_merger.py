"""
Applies one-off availability exceptions on top of expanded weekly windows.

Per date, every 'blocked' exception is applied first, then every 'added'
exception. Additions are unioned into their own consultation type and are
not clipped by blocks on the same date, so an addition can re-open time a
block removed.
"""

import logging
from datetime import date
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from models import AvailabilityException
from shared_types.availability import WindowsByDate
from utils.datetime_utils import MINUTES_PER_DAY, time_to_minutes
from utils.interval_utils import group_by_type, subtract_range, to_windows, union_ranges

logger = logging.getLogger(__name__)


def _exception_range(exception: AvailabilityException) -> tuple[int, int]:
    if exception.is_all_day:
        return (0, MINUTES_PER_DAY)
    assert exception.start_time is not None and exception.end_time is not None
    return (time_to_minutes(exception.start_time), time_to_minutes(exception.end_time))


class ExceptionMerger:
    """Second pipeline stage: blocks, then additions."""

    @staticmethod
    def load_exceptions(db: Session, doctor_id: int, date_from: date, date_to: date) -> List[AvailabilityException]:
        """Fetch the doctor's exceptions for dates in [date_from, date_to]."""
        return db.query(AvailabilityException).filter(
            AvailabilityException.doctor_id == doctor_id,
            AvailabilityException.date >= date_from,
            AvailabilityException.date <= date_to
        ).order_by(AvailabilityException.date, AvailabilityException.id).all()

    @staticmethod
    def apply(windows_by_date: WindowsByDate, exceptions: Iterable[AvailabilityException]) -> WindowsByDate:
        """
        Apply exceptions to windows.

        Exceptions for dates not present in ``windows_by_date`` are ignored,
        so callers control the date range. The input mapping is not modified.

        Args:
            windows_by_date: Output of the recurrence stage
            exceptions: Exceptions of the same doctor

        Returns:
            New mapping of date to sorted, disjoint windows
        """
        exceptions_by_date: Dict[date, List[AvailabilityException]] = {}
        for exception in exceptions:
            exceptions_by_date.setdefault(exception.date, []).append(exception)

        result: WindowsByDate = {}
        for day, windows in windows_by_date.items():
            day_exceptions = exceptions_by_date.get(day)
            if not day_exceptions:
                result[day] = list(windows)
                continue

            grouped = group_by_type(windows)

            for block in (e for e in day_exceptions if e.is_block):
                cut = _exception_range(block)
                for consultation_type in list(grouped):
                    if block.consultation_type is None or block.consultation_type == consultation_type:
                        grouped[consultation_type] = subtract_range(grouped[consultation_type], cut)

            for addition in (e for e in day_exceptions if e.is_addition):
                if addition.consultation_type is None:
                    logger.warning(f"Ignoring added exception {addition.id} without consultation type")
                    continue
                ranges = grouped.get(addition.consultation_type, [])
                grouped[addition.consultation_type] = union_ranges(ranges + [_exception_range(addition)])

            result[day] = to_windows(grouped)

        return result
