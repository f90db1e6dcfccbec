"""
Busy time imported from an external calendar.

Rows are owned by their connection and fully replaced for the sync window on
every successful sync, so they are never edited in place.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import MAX_STRING_LENGTH
from core.database import Base


class ExternalBusyInterval(Base):
    """A single busy range in UTC."""

    __tablename__ = "external_busy_intervals"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    connection_id: Mapped[int] = mapped_column(
        ForeignKey("external_calendar_connections.id", ondelete="CASCADE")
    )
    """Reference to the connection that imported this interval."""

    start_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """Start instant (UTC)."""

    end_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True))
    """End instant (UTC), exclusive."""

    provider_event_id: Mapped[Optional[str]] = mapped_column(String(MAX_STRING_LENGTH), nullable=True)
    """Event id on the provider side, kept for debugging."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    connection = relationship("ExternalCalendarConnection", back_populates="busy_intervals")

    __table_args__ = (
        Index('idx_busy_intervals_connection_range', 'connection_id', 'start_at', 'end_at'),
    )

    def __repr__(self) -> str:
        return f"<ExternalBusyInterval(id={self.id}, connection_id={self.connection_id}, {self.start_at}-{self.end_at})>"
