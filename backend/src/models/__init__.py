# Package initialization
# Import all models to ensure relationships are properly established
from .doctor import Doctor
from .patient import Patient
from .weekly_availability_rule import WeeklyAvailabilityRule
from .availability_exception import AvailabilityException
from .calendar_connection import ExternalCalendarConnection
from .external_busy_interval import ExternalBusyInterval
from .booking import Booking

__all__ = [
    "Doctor",
    "Patient",
    "WeeklyAvailabilityRule",
    "AvailabilityException",
    "ExternalCalendarConnection",
    "ExternalBusyInterval",
    "Booking",
]
