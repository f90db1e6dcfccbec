"""
Shared types for availability-related functionality.

Every stage of the availability pipeline takes and returns a
``WindowsByDate`` mapping, so stages can be composed and tested on their own.
"""

from dataclasses import dataclass
from datetime import date, time
from typing import Dict, List

from utils.datetime_utils import format_time, minutes_to_time


@dataclass(frozen=True, order=True)
class TimeWindow:
    """
    A half-open range [start_minute, end_minute) of a local day for one consultation type.

    Minutes are counted from local midnight; ``end_minute`` may be 1440 when
    an interval runs to the end of the day.
    """
    start_minute: int
    end_minute: int
    consultation_type: str


WindowsByDate = Dict[date, List[TimeWindow]]


@dataclass(frozen=True)
class Slot:
    """
    A computed, never persisted, candidate bookable window.
    """
    date: date
    start_time: time
    end_time: time
    consultation_type: str

    @classmethod
    def from_minutes(cls, day: date, start_minute: int, end_minute: int, consultation_type: str) -> "Slot":
        return cls(
            date=day,
            start_time=minutes_to_time(start_minute),
            end_time=minutes_to_time(end_minute),
            consultation_type=consultation_type,
        )

    def to_dict(self) -> dict[str, str]:
        """Convert to the API dictionary format."""
        return {
            "start_time": format_time(self.start_time),
            "end_time": format_time(self.end_time),
            "consultation_type": self.consultation_type,
        }

    def overlaps(self, start: time, end: time) -> bool:
        """Check whether this slot overlaps the half-open range [start, end)."""
        return self.start_time < end and start < self.end_time

    def matches(self, day: date, start: time) -> bool:
        return self.date == day and self.start_time == start
