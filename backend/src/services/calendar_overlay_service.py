"""
External calendar overlay.

Subtracts busy time imported from a doctor's connected external calendars.
Busy intervals are stored as UTC instants; they are converted into the
doctor's local dates and minute ranges here, so an interval crossing local
midnight affects both dates.
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy.orm import Session

from core.constants import CONNECTION_STATUS_ACTIVE
from models import ExternalBusyInterval, ExternalCalendarConnection
from shared_types.availability import WindowsByDate
from utils.datetime_utils import MINUTES_PER_DAY, local_to_utc, to_doctor_local
from utils.interval_utils import group_by_type, subtract_ranges, to_windows, union_ranges

logger = logging.getLogger(__name__)

Range = Tuple[int, int]
BusyInterval = Tuple[datetime, datetime]


def busy_to_local_ranges(
    busy_intervals: Iterable[BusyInterval],
    tz_name: str,
    dates: Sequence[date]
) -> Dict[date, List[Range]]:
    """
    Project UTC busy intervals onto local per-date minute ranges.

    Only dates in ``dates`` are returned. Ranges are clipped to the day,
    with 1440 standing for the following midnight.
    """
    wanted = set(dates)
    per_date: Dict[date, List[Range]] = {}

    for start_at, end_at in busy_intervals:
        # Wall-clock values, so minute offsets stay correct across DST changes
        local_start = to_doctor_local(start_at, tz_name).replace(tzinfo=None)
        local_end = to_doctor_local(end_at, tz_name).replace(tzinfo=None)
        if local_end <= local_start:
            continue

        day = local_start.date()
        while day <= local_end.date():
            if day in wanted:
                day_start = datetime.combine(day, time.min)
                start_minute = max(0, int((local_start - day_start).total_seconds() // 60))
                # Round partial minutes outward so busy time is never offered
                end_seconds = (local_end - day_start).total_seconds()
                end_minute = min(MINUTES_PER_DAY, int(-(-end_seconds // 60)))
                if end_minute > start_minute:
                    per_date.setdefault(day, []).append((start_minute, end_minute))
            day += timedelta(days=1)

    return {day: union_ranges(ranges) for day, ranges in per_date.items()}


class CalendarOverlayService:
    """Third pipeline stage: subtract external busy time from every type."""

    @staticmethod
    def load_busy_intervals(
        db: Session,
        doctor_id: int,
        date_from: date,
        date_to: date,
        tz_name: str
    ) -> List[BusyInterval]:
        """
        Fetch busy intervals of the doctor's active connections that touch
        the local date range.

        Intervals of expired or revoked connections, and of connections with
        sync turned off, are excluded.
        """
        range_start = local_to_utc(date_from, time.min, tz_name)
        range_end = local_to_utc(date_to + timedelta(days=1), time.min, tz_name)

        rows = db.query(ExternalBusyInterval.start_at, ExternalBusyInterval.end_at).join(
            ExternalCalendarConnection,
            ExternalCalendarConnection.id == ExternalBusyInterval.connection_id
        ).filter(
            ExternalCalendarConnection.doctor_id == doctor_id,
            ExternalCalendarConnection.status == CONNECTION_STATUS_ACTIVE,
            ExternalCalendarConnection.sync_enabled == True,  # noqa: E712
            ExternalBusyInterval.start_at < range_end,
            ExternalBusyInterval.end_at > range_start
        ).all()

        return [(row.start_at, row.end_at) for row in rows]

    @staticmethod
    def apply(
        windows_by_date: WindowsByDate,
        busy_intervals: Iterable[BusyInterval],
        tz_name: str
    ) -> WindowsByDate:
        """
        Subtract busy intervals from the windows of every consultation type.

        With no busy intervals the windows pass through unchanged. Windows
        reduced to zero length are dropped.

        Args:
            windows_by_date: Output of the exception stage
            busy_intervals: (start, end) UTC instant pairs
            tz_name: Doctor's IANA timezone

        Returns:
            New mapping of date to sorted, disjoint windows
        """
        busy_by_date = busy_to_local_ranges(busy_intervals, tz_name, list(windows_by_date))
        if not busy_by_date:
            return {day: list(windows) for day, windows in windows_by_date.items()}

        result: WindowsByDate = {}
        for day, windows in windows_by_date.items():
            busy = busy_by_date.get(day)
            if not busy:
                result[day] = list(windows)
                continue
            grouped = group_by_type(windows)
            result[day] = to_windows({
                consultation_type: subtract_ranges(ranges, busy)
                for consultation_type, ranges in grouped.items()
            })

        return result
