"""
Recurrence expansion for doctor weekly schedules.

Turns WeeklyAvailabilityRule rows into concrete per-date windows for a date
range. This is the first stage of the availability pipeline; it reads rules
but never writes.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, List

from sqlalchemy.orm import Session

from models import WeeklyAvailabilityRule
from shared_types.availability import TimeWindow, WindowsByDate
from utils.datetime_utils import time_to_minutes
from utils.interval_utils import normalize_windows

logger = logging.getLogger(__name__)


def iter_dates(date_from: date, date_to: date) -> Iterable[date]:
    """Yield every date in the inclusive range [date_from, date_to]."""
    current = date_from
    while current <= date_to:
        yield current
        current += timedelta(days=1)


class RecurrenceExpander:
    """
    Expands weekly rules into per-date windows.

    The expansion is pure: given the same rules and range it always returns
    the same mapping, and every date in the range is present as a key (with
    an empty list when the doctor does not work that day).
    """

    @staticmethod
    def load_rules(db: Session, doctor_id: int) -> List[WeeklyAvailabilityRule]:
        """Fetch the doctor's active weekly rules."""
        return db.query(WeeklyAvailabilityRule).filter(
            WeeklyAvailabilityRule.doctor_id == doctor_id,
            WeeklyAvailabilityRule.is_active == True  # noqa: E712
        ).order_by(
            WeeklyAvailabilityRule.day_of_week,
            WeeklyAvailabilityRule.start_time
        ).all()

    @staticmethod
    def expand(
        rules: Iterable[WeeklyAvailabilityRule],
        date_from: date,
        date_to: date
    ) -> WindowsByDate:
        """
        Expand rules into windows for each date in [date_from, date_to].

        Rules are matched by weekday, active flag and effective range.
        Overlapping or adjacent ranges of the same consultation type are
        unioned into maximal disjoint windows.

        Args:
            rules: Weekly rules of a single doctor
            date_from: First date (inclusive)
            date_to: Last date (inclusive)

        Returns:
            Mapping of date to sorted, disjoint windows
        """
        rules_by_weekday: dict[int, List[WeeklyAvailabilityRule]] = {}
        for rule in rules:
            rules_by_weekday.setdefault(rule.day_of_week, []).append(rule)

        result: WindowsByDate = {}
        for day in iter_dates(date_from, date_to):
            windows = [
                TimeWindow(
                    time_to_minutes(rule.start_time),
                    time_to_minutes(rule.end_time),
                    rule.consultation_type,
                )
                for rule in rules_by_weekday.get(day.weekday(), [])
                if rule.applies_on(day)
            ]
            result[day] = normalize_windows(windows)

        return result

    @staticmethod
    def expand_for_doctor(db: Session, doctor_id: int, date_from: date, date_to: date) -> WindowsByDate:
        """Load a doctor's rules and expand them."""
        rules = RecurrenceExpander.load_rules(db, doctor_id)
        logger.debug(f"Expanding {len(rules)} weekly rules for doctor {doctor_id} ({date_from} to {date_to})")
        return RecurrenceExpander.expand(rules, date_from, date_to)
