# pyright: reportMissingTypeStubs=false
"""
Doctor schedule management endpoints: weekly rules and exceptions.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from api.responses import AvailabilityExceptionResponse, AvailabilityRuleResponse, SuccessResponse
from auth.dependencies import UserContext, require_doctor
from core.database import get_db
from services.schedule_service import ScheduleService
from utils.datetime_utils import parse_time_string

logger = logging.getLogger(__name__)

router = APIRouter()


class AvailabilityRuleCreateRequest(BaseModel):
    """Request model for a weekly rule."""
    day_of_week: int  # 0=Monday ... 6=Sunday
    start_time: str  # Format: "HH:MM"
    end_time: str    # Format: "HH:MM"
    consultation_type: str
    location: Optional[str] = None
    effective_from: Optional[date] = None
    effective_until: Optional[date] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        parse_time_string(v)
        return v


class AvailabilityExceptionCreateRequest(BaseModel):
    """Request model for a block or an addition."""
    date: date
    kind: str  # "blocked" or "added"
    start_time: Optional[str] = None  # Omit both times to block the whole day
    end_time: Optional[str] = None
    consultation_type: Optional[str] = None
    reason: Optional[str] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time_format(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            parse_time_string(v)
        return v


@router.get("/doctors/me/availability-rules", response_model=List[AvailabilityRuleResponse])
async def list_availability_rules(
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> List[AvailabilityRuleResponse]:
    rules = ScheduleService.list_rules(db, current_user.user_id)
    return [AvailabilityRuleResponse.from_rule(rule) for rule in rules]


@router.post(
    "/doctors/me/availability-rules",
    response_model=AvailabilityRuleResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_availability_rule(
    request: AvailabilityRuleCreateRequest,
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> AvailabilityRuleResponse:
    rule = ScheduleService.create_rule(
        db,
        current_user.user_id,
        day_of_week=request.day_of_week,
        start_time=parse_time_string(request.start_time),
        end_time=parse_time_string(request.end_time),
        consultation_type=request.consultation_type,
        location=request.location,
        effective_from=request.effective_from,
        effective_until=request.effective_until,
    )
    return AvailabilityRuleResponse.from_rule(rule)


@router.delete("/doctors/me/availability-rules/{rule_id}", response_model=SuccessResponse)
async def delete_availability_rule(
    rule_id: int,
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> SuccessResponse:
    ScheduleService.delete_rule(db, current_user.user_id, rule_id)
    return SuccessResponse()


@router.get("/doctors/me/availability-exceptions", response_model=List[AvailabilityExceptionResponse])
async def list_availability_exceptions(
    date_from: date = Query(...),
    date_to: date = Query(...),
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> List[AvailabilityExceptionResponse]:
    exceptions = ScheduleService.list_exceptions(db, current_user.user_id, date_from, date_to)
    return [AvailabilityExceptionResponse.from_exception(e) for e in exceptions]


@router.post(
    "/doctors/me/availability-exceptions",
    response_model=AvailabilityExceptionResponse,
    status_code=status.HTTP_201_CREATED
)
async def create_availability_exception(
    request: AvailabilityExceptionCreateRequest,
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> AvailabilityExceptionResponse:
    exception = ScheduleService.create_exception(
        db,
        current_user.user_id,
        exception_date=request.date,
        kind=request.kind,
        start_time=parse_time_string(request.start_time) if request.start_time else None,
        end_time=parse_time_string(request.end_time) if request.end_time else None,
        consultation_type=request.consultation_type,
        reason=request.reason,
    )
    return AvailabilityExceptionResponse.from_exception(exception)


@router.delete("/doctors/me/availability-exceptions/{exception_id}", response_model=SuccessResponse)
async def delete_availability_exception(
    exception_id: int,
    current_user: UserContext = Depends(require_doctor),
    db: Session = Depends(get_db)
) -> SuccessResponse:
    ScheduleService.delete_exception(db, current_user.user_id, exception_id)
    return SuccessResponse()
