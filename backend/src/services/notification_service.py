"""
Notification events emitted by the booking engine.

Delivery (email, SMS, WhatsApp, in-app) lives outside this service: channels
register handlers for the events they care about. A failing handler is
logged and never rolls back the booking or sync state that emitted it.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class NotificationEvent(Enum):
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_PENDING_APPROVAL = "booking_pending_approval"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_STATUS_CHANGED = "booking_status_changed"
    BOOKING_EXPIRED = "booking_expired"
    SLOT_CONFLICT = "slot_conflict"
    SYNC_FAILED = "sync_failed"
    CONNECTION_EXPIRED = "connection_expired"


Handler = Callable[[NotificationEvent, Dict[str, Any]], None]

_handlers: Dict[NotificationEvent, List[Handler]] = {}


class NotificationService:
    """In-process event bus for booking and calendar sync notifications."""

    @staticmethod
    def register_handler(event: NotificationEvent, handler: Handler) -> None:
        """Register a delivery handler for an event."""
        _handlers.setdefault(event, []).append(handler)

    @staticmethod
    def clear_handlers() -> None:
        """Remove all registered handlers."""
        _handlers.clear()

    @staticmethod
    def emit(event: NotificationEvent, payload: Dict[str, Any]) -> int:
        """
        Deliver an event to every registered handler.

        Args:
            event: Event type
            payload: JSON-serializable event data

        Returns:
            Number of handlers that completed successfully
        """
        handlers = _handlers.get(event, [])
        logger.info(f"Notification event {event.value}: {payload}")

        delivered = 0
        for handler in handlers:
            try:
                handler(event, payload)
                delivered += 1
            except Exception as e:
                logger.exception(f"Notification handler failed for {event.value}: {e}")
        return delivered
