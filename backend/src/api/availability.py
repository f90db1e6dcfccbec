# pyright: reportMissingTypeStubs=false
"""
Public availability endpoint.

Patients and the search UI read bookable slots here; no authentication is
required because slots carry no patient data.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.responses import AvailableSlotsResponse, SlotResponse
from core.database import get_db
from services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/doctors/{doctor_id}/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    doctor_id: int,
    date_from: date = Query(..., description="First date (YYYY-MM-DD)"),
    date_to: date = Query(..., description="Last date, inclusive (YYYY-MM-DD)"),
    db: Session = Depends(get_db)
) -> AvailableSlotsResponse:
    """
    Get bookable slots for a doctor.

    Every date in the range appears in the response, with an empty list
    when nothing is available. Slots are recomputed on every request.
    """
    slots_by_date = AvailabilityService.get_available_slots(db, doctor_id, date_from, date_to)
    doctor = AvailabilityService.get_doctor(db, doctor_id)

    return AvailableSlotsResponse(
        doctor_id=doctor_id,
        timezone=doctor.timezone,
        slots={
            day: [SlotResponse(**slot) for slot in slots]
            for day, slots in AvailabilityService.to_response(slots_by_date).items()
        },
    )
