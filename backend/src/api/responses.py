"""
Shared response models for API endpoints.

This module contains Pydantic response models that are shared across
multiple API endpoints to ensure consistency and reduce duplication.
"""

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from models import AvailabilityException, Booking, ExternalCalendarConnection, WeeklyAvailabilityRule
from utils.datetime_utils import format_time


class SlotResponse(BaseModel):
    """A bookable slot; times are HH:MM in the doctor's timezone."""
    start_time: str
    end_time: str
    consultation_type: str


class AvailableSlotsResponse(BaseModel):
    """Response model for available slots, keyed by YYYY-MM-DD."""
    doctor_id: int
    timezone: str
    slots: Dict[str, List[SlotResponse]]


class BookingResponse(BaseModel):
    """Response model for a booking."""
    id: int
    doctor_id: int
    patient_id: int
    appointment_date: date
    start_time: str
    end_time: str
    consultation_type: str
    status: str
    patient_notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            doctor_id=booking.doctor_id,
            patient_id=booking.patient_id,
            appointment_date=booking.appointment_date,
            start_time=format_time(booking.start_time),
            end_time=format_time(booking.end_time),
            consultation_type=booking.consultation_type,
            status=booking.status,
            patient_notes=booking.patient_notes,
            cancellation_reason=booking.cancellation_reason,
            created_at=booking.created_at,
        )


class AvailabilityRuleResponse(BaseModel):
    """Response model for a weekly availability rule."""
    id: int
    day_of_week: int
    start_time: str
    end_time: str
    consultation_type: str
    location: Optional[str] = None
    is_active: bool
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None

    @classmethod
    def from_rule(cls, rule: WeeklyAvailabilityRule) -> "AvailabilityRuleResponse":
        return cls(
            id=rule.id,
            day_of_week=rule.day_of_week,
            start_time=format_time(rule.start_time),
            end_time=format_time(rule.end_time),
            consultation_type=rule.consultation_type,
            location=rule.location,
            is_active=rule.is_active,
            effective_from=rule.effective_from,
            effective_until=rule.effective_until,
        )


class AvailabilityExceptionResponse(BaseModel):
    """Response model for an availability exception."""
    id: int
    date: date
    kind: str
    start_time: Optional[str] = None  # None for whole-day blocks
    end_time: Optional[str] = None
    consultation_type: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_exception(cls, exception: AvailabilityException) -> "AvailabilityExceptionResponse":
        return cls(
            id=exception.id,
            date=exception.date,
            kind=exception.kind,
            start_time=format_time(exception.start_time) if exception.start_time else None,
            end_time=format_time(exception.end_time) if exception.end_time else None,
            consultation_type=exception.consultation_type,
            reason=exception.reason,
        )


class CalendarConnectionResponse(BaseModel):
    """Response model for the doctor's calendar connection."""
    provider: str
    account_email: Optional[str] = None
    calendar_id: str
    status: str
    sync_enabled: bool
    last_synced_at: Optional[datetime] = None
    last_sync_error: Optional[str] = None

    @classmethod
    def from_connection(cls, connection: ExternalCalendarConnection) -> "CalendarConnectionResponse":
        return cls(
            provider=connection.provider,
            account_email=connection.account_email,
            calendar_id=connection.calendar_id,
            status=connection.status,
            sync_enabled=connection.sync_enabled,
            last_synced_at=connection.last_synced_at,
            last_sync_error=connection.last_sync_error,
        )


class CalendarSummaryResponse(BaseModel):
    """One calendar of the connected Google account."""
    id: str
    summary: str
    primary: bool = False


class SyncResultResponse(BaseModel):
    events_processed: int


class SuccessResponse(BaseModel):
    """Generic success response."""
    success: bool = True
    message: Optional[str] = None
