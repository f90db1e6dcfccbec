"""
Datetime utilities for consistent timezone handling across the application.

Instants (created_at, external busy intervals, sync timestamps) are stored in
UTC. Appointment dates and times are wall-clock values in the doctor's own
timezone, so conversions go through ``to_doctor_local``.
"""

import logging
from datetime import datetime, timezone, date, time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime with UTC timezone
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware in UTC.

    Naive values are assumed to already be UTC (SQLite returns naive
    datetimes for timezone-aware columns).

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """Resolve an IANA timezone name, falling back to UTC for unknown names."""
    try:
        return ZoneInfo(tz_name or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{tz_name}', falling back to UTC")
        return ZoneInfo("UTC")


def to_doctor_local(dt: datetime, tz_name: Optional[str]) -> datetime:
    """Convert an instant to the doctor's local wall-clock time."""
    aware = ensure_utc(dt)
    assert aware is not None
    return aware.astimezone(get_zone(tz_name))


def local_to_utc(day: date, at: time, tz_name: Optional[str]) -> datetime:
    """Interpret a local date and time in the doctor's timezone and return UTC."""
    local = datetime.combine(day, at).replace(tzinfo=get_zone(tz_name))
    return local.astimezone(timezone.utc)


def local_time_exists(day: date, at: time, tz_name: Optional[str]) -> bool:
    """False for wall-clock times skipped by a DST change, e.g. 02:30 on a spring-forward day."""
    round_trip = to_doctor_local(local_to_utc(day, at, tz_name), tz_name)
    return round_trip.date() == day and round_trip.time() == at


def time_to_minutes(t: time) -> int:
    """Minutes since midnight for a time of day."""
    return t.hour * 60 + t.minute


def minutes_to_time(minutes: int) -> time:
    """Time of day for minutes since midnight (must be below 24:00)."""
    if minutes < 0 or minutes >= MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a time of day: {minutes}")
    return time(minutes // 60, minutes % 60)


def format_time(t: time) -> str:
    """Format time object to HH:MM string."""
    return t.strftime('%H:%M')


def parse_time_string(time_str: str) -> time:
    """
    Parse a time string in HH:MM (or HH:MM:SS) format.

    Raises:
        ValueError: If time string cannot be parsed
    """
    if not time_str or not time_str.strip():
        raise ValueError("Time string cannot be empty")

    value = time_str.strip()
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time format (expected HH:MM): {time_str}")


def parse_rfc3339(value: str) -> datetime:
    """
    Parse an RFC3339 timestamp as returned by Google Calendar into UTC.

    Raises:
        ValueError: If the value cannot be parsed
    """
    dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
    result = ensure_utc(dt)
    assert result is not None
    return result


def format_rfc3339(dt: datetime) -> str:
    """Format a datetime as RFC3339 string in UTC with Z suffix."""
    aware = ensure_utc(dt)
    assert aware is not None
    iso_str = aware.isoformat()
    if iso_str.endswith('+00:00'):
        return iso_str[:-6] + 'Z'
    return iso_str
