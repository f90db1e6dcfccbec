"""
Patient model.

Patient identity is managed by the identity provider; this table only keeps
what bookings and notifications need.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class Patient(Base):
    """Patient entity referenced by bookings."""

    __tablename__ = "patients"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the patient."""

    full_name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))
    """Patient's full name."""

    email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Contact email for booking notifications."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    bookings: Mapped[List["Booking"]] = relationship("Booking", back_populates="patient")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, full_name='{self.full_name}')>"
