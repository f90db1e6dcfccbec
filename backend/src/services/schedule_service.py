"""
Doctor schedule management: weekly rules and one-off exceptions.
"""

import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from core.constants import (
    CONSULTATION_TYPES,
    EXCEPTION_KIND_ADDED,
    EXCEPTION_KINDS,
    MAX_STRING_LENGTH,
)
from core.exceptions import NotFoundError, ValidationError
from models import AvailabilityException, Doctor, WeeklyAvailabilityRule

logger = logging.getLogger(__name__)


def _validate_consultation_type(consultation_type: Optional[str]) -> None:
    if consultation_type is not None and consultation_type not in CONSULTATION_TYPES:
        raise ValidationError(f"Invalid consultation type: {consultation_type}")


class ScheduleService:
    """Service class for a doctor's schedule."""

    @staticmethod
    def _ensure_doctor(db: Session, doctor_id: int) -> None:
        if not db.query(Doctor.id).filter(Doctor.id == doctor_id).first():
            raise NotFoundError(f"Doctor {doctor_id} not found")

    @staticmethod
    def list_rules(db: Session, doctor_id: int) -> List[WeeklyAvailabilityRule]:
        return db.query(WeeklyAvailabilityRule).filter(
            WeeklyAvailabilityRule.doctor_id == doctor_id
        ).order_by(WeeklyAvailabilityRule.day_of_week, WeeklyAvailabilityRule.start_time).all()

    @staticmethod
    def create_rule(
        db: Session,
        doctor_id: int,
        day_of_week: int,
        start_time: time,
        end_time: time,
        consultation_type: str,
        location: Optional[str] = None,
        effective_from: Optional[date] = None,
        effective_until: Optional[date] = None
    ) -> WeeklyAvailabilityRule:
        """
        Create a weekly availability rule.

        Overlapping rules are accepted; availability unions them.

        Raises:
            ValidationError: If the rule is malformed
            NotFoundError: If the doctor does not exist
        """
        if day_of_week < 0 or day_of_week > 6:
            raise ValidationError("Day of week must be between 0 (Monday) and 6 (Sunday)")
        if start_time >= end_time:
            raise ValidationError("Start time must be before end time")
        if consultation_type is None:
            raise ValidationError("Consultation type is required")
        _validate_consultation_type(consultation_type)
        if effective_from and effective_until and effective_from > effective_until:
            raise ValidationError("effective_from must not be after effective_until")
        if location is not None and len(location) > MAX_STRING_LENGTH:
            raise ValidationError(f"Location cannot exceed {MAX_STRING_LENGTH} characters")

        ScheduleService._ensure_doctor(db, doctor_id)

        rule = WeeklyAvailabilityRule(
            doctor_id=doctor_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            consultation_type=consultation_type,
            location=location,
            effective_from=effective_from,
            effective_until=effective_until,
            is_active=True,
        )
        db.add(rule)
        db.commit()
        logger.info(f"Created weekly rule {rule.id} for doctor {doctor_id}")
        return rule

    @staticmethod
    def delete_rule(db: Session, doctor_id: int, rule_id: int) -> None:
        """
        Delete one of the doctor's weekly rules.

        Raises:
            NotFoundError: If the doctor has no such rule
        """
        rule = db.query(WeeklyAvailabilityRule).filter(
            WeeklyAvailabilityRule.id == rule_id,
            WeeklyAvailabilityRule.doctor_id == doctor_id
        ).first()
        if not rule:
            raise NotFoundError(f"Availability rule {rule_id} not found")
        db.delete(rule)
        db.commit()
        logger.info(f"Deleted weekly rule {rule_id} for doctor {doctor_id}")

    @staticmethod
    def list_exceptions(db: Session, doctor_id: int, date_from: date, date_to: date) -> List[AvailabilityException]:
        return db.query(AvailabilityException).filter(
            AvailabilityException.doctor_id == doctor_id,
            AvailabilityException.date >= date_from,
            AvailabilityException.date <= date_to
        ).order_by(AvailabilityException.date, AvailabilityException.start_time).all()

    @staticmethod
    def create_exception(
        db: Session,
        doctor_id: int,
        exception_date: date,
        kind: str,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        consultation_type: Optional[str] = None,
        reason: Optional[str] = None
    ) -> AvailabilityException:
        """
        Create a one-off block or addition.

        A block without times covers the whole day; a block without a
        consultation type applies to every type. An addition needs both.

        Raises:
            ValidationError: If the exception is malformed
            NotFoundError: If the doctor does not exist
        """
        if kind not in EXCEPTION_KINDS:
            raise ValidationError(f"Invalid exception kind: {kind}")
        if (start_time is None) != (end_time is None):
            raise ValidationError("Start time and end time must be given together")
        if start_time is not None and end_time is not None and start_time >= end_time:
            raise ValidationError("Start time must be before end time")
        _validate_consultation_type(consultation_type)
        if kind == EXCEPTION_KIND_ADDED:
            if start_time is None:
                raise ValidationError("Added availability needs a start and end time")
            if consultation_type is None:
                raise ValidationError("Added availability needs a consultation type")
        if reason is not None and len(reason) > MAX_STRING_LENGTH:
            raise ValidationError(f"Reason cannot exceed {MAX_STRING_LENGTH} characters")

        ScheduleService._ensure_doctor(db, doctor_id)

        exception = AvailabilityException(
            doctor_id=doctor_id,
            date=exception_date,
            kind=kind,
            start_time=start_time,
            end_time=end_time,
            consultation_type=consultation_type,
            reason=reason,
        )
        db.add(exception)
        db.commit()
        logger.info(f"Created {kind} exception {exception.id} for doctor {doctor_id} on {exception_date}")
        return exception

    @staticmethod
    def delete_exception(db: Session, doctor_id: int, exception_id: int) -> None:
        """
        Delete one of the doctor's exceptions.

        Raises:
            NotFoundError: If the doctor has no such exception
        """
        exception = db.query(AvailabilityException).filter(
            AvailabilityException.id == exception_id,
            AvailabilityException.doctor_id == doctor_id
        ).first()
        if not exception:
            raise NotFoundError(f"Availability exception {exception_id} not found")
        db.delete(exception)
        db.commit()
        logger.info(f"Deleted exception {exception_id} for doctor {doctor_id}")
