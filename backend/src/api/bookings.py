# pyright: reportMissingTypeStubs=false
"""
Booking endpoints: creation by patients, cancellation and doctor status updates.
"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from api.responses import BookingResponse
from auth.dependencies import UserContext, require_doctor, require_patient, require_patient_or_doctor
from core.constants import MAX_CANCELLATION_REASON_LENGTH, MAX_PATIENT_NOTES_LENGTH
from core.database import get_db
from services.booking_service import CANCELLED_BY_DOCTOR, CANCELLED_BY_PATIENT, BookingService
from utils.datetime_utils import parse_time_string

logger = logging.getLogger(__name__)

router = APIRouter()


class BookingCreateRequest(BaseModel):
    """Request model for creating a booking."""
    doctor_id: int
    appointment_date: date
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    consultation_type: str
    patient_notes: Optional[str] = Field(default=None, max_length=MAX_PATIENT_NOTES_LENGTH)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        parse_time_string(v)
        return v


class BookingCancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=MAX_CANCELLATION_REASON_LENGTH)


class BookingStatusUpdateRequest(BaseModel):
    """Doctor-driven status change: approved, rejected, completed, no_show or refunded."""
    status: str
    reason: Optional[str] = Field(default=None, max_length=MAX_CANCELLATION_REASON_LENGTH)


@router.post("/bookings", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreateRequest,
    current_user: UserContext = Depends(require_patient),
    db: Session = Depends(get_db)
) -> BookingResponse:
    """
    Book a slot for the authenticated patient.

    Returns 409 when the slot was taken in the meantime; the client should
    reload availability rather than retry the same slot.
    """
    booking = BookingService.create_booking(
        db,
        doctor_id=request.doctor_id,
        patient_id=current_user.user_id,
        appointment_date=request.appointment_date,
        start_time=parse_time_string(request.start_time),
        end_time=parse_time_string(request.end_time),
        consultation_type=request.consultation_type,
        patient_notes=request.patient_notes,
    )
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int,
    request: BookingCancelRequest,
    current_user: UserContext = Depends(require_patient_or_doctor),
    db: Session = Depends(get_db)
) -> BookingResponse:
    """Cancel a booking as its patient or its doctor."""
    booking = BookingService.cancel_booking(
        db,
        booking_id,
        cancelled_by=CANCELLED_BY_PATIENT if current_user.is_patient() else CANCELLED_BY_DOCTOR,
        actor_id=current_user.user_id,
        reason=request.reason,
    )
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: int,
    request: BookingStatusUpdateRequest,
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> BookingResponse:
    """Approve, reject, complete or mark a booking as no-show."""
    booking = BookingService.update_booking_status(
        db,
        booking_id,
        doctor_id=current_user.user_id,
        new_status=request.status,
        reason=request.reason,
    )
    return BookingResponse.from_booking(booking)
