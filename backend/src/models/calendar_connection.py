"""
External calendar connection model.

Stores a doctor's link to an external calendar provider (Google Calendar):
encrypted OAuth credentials, the selected calendar, the push-notification
channel and the bookkeeping used by the periodic sync.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, String, Text, TIMESTAMP, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import CALENDAR_PROVIDER_GOOGLE, CONNECTION_STATUS_ACTIVE, CONNECTION_STATUSES, MAX_STRING_LENGTH
from core.database import Base


class ExternalCalendarConnection(Base):
    """
    A doctor's connection to one external calendar provider.

    Only connections in status 'active' contribute busy time to availability.
    A connection moves to 'expired' when its credentials can no longer be
    refreshed and stays there until the doctor reconnects.
    """

    __tablename__ = "external_calendar_connections"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the connection."""

    doctor_id: Mapped[int] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"))
    """Reference to the doctor owning the connection."""

    provider: Mapped[str] = mapped_column(String(50), default=CALENDAR_PROVIDER_GOOGLE, nullable=False)
    """Calendar provider identifier (currently only 'google')."""

    account_email: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Email of the provider account that granted access."""

    calendar_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH), default="primary", nullable=False)
    """Provider id of the calendar whose events are imported."""

    encrypted_credentials: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Fernet-encrypted OAuth credentials JSON (see EncryptionService)."""

    webhook_channel_id: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), unique=True, nullable=True)
    """Push-notification channel id we registered with the provider."""

    webhook_resource_id: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), unique=True, nullable=True)
    """Opaque resource id returned by the provider for the watched calendar."""

    webhook_expiration: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """When the push channel expires and must be renewed."""

    sync_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Provider sync cursor from the last successful sync."""

    status: Mapped[str] = mapped_column(String(20), default=CONNECTION_STATUS_ACTIVE, nullable=False)
    """Connection status: 'active', 'expired' or 'revoked'."""

    sync_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    """Whether the connection takes part in webhook and scheduled syncs."""

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """Timestamp of the last successful sync."""

    last_sync_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Error message of the last failed sync, cleared on success."""

    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    """Number of failed syncs since the last success."""

    next_sync_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    """
    Earliest time the scheduled pull may sync this connection again.
    Pushed back exponentially after failures.
    """

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    doctor = relationship("Doctor", back_populates="calendar_connections")
    busy_intervals: Mapped[List["ExternalBusyInterval"]] = relationship(  # noqa: F821
        "ExternalBusyInterval", back_populates="connection", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint('doctor_id', 'provider', name='uq_calendar_connection_doctor_provider'),
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in CONNECTION_STATUSES) + ")",
            name='check_calendar_connection_status'
        ),
        Index('idx_calendar_connections_status', 'status', 'sync_enabled'),
    )

    @property
    def is_active(self) -> bool:
        return self.status == CONNECTION_STATUS_ACTIVE

    def __repr__(self) -> str:
        return (
            f"<ExternalCalendarConnection(id={self.id}, doctor_id={self.doctor_id}, "
            f"provider={self.provider}, status={self.status})>"
        )
