"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across API endpoints and scheduler jobs.
"""

from .availability_service import AvailabilityService
from .booking_service import BookingService
from .calendar_sync_service import CalendarSyncService
from .schedule_service import ScheduleService

__all__ = [
    "AvailabilityService",
    "BookingService",
    "CalendarSyncService",
    "ScheduleService",
]
