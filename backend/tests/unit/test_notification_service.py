"""
Unit tests for the notification event bus.
"""

from services.notification_service import NotificationEvent, NotificationService


def test_emit_without_handlers():
    assert NotificationService.emit(NotificationEvent.BOOKING_CREATED, {"booking_id": 1}) == 0


def test_handlers_receive_only_their_event():
    received = []
    NotificationService.register_handler(NotificationEvent.BOOKING_CREATED, lambda e, p: received.append((e, p)))

    NotificationService.emit(NotificationEvent.BOOKING_CREATED, {"booking_id": 1})
    NotificationService.emit(NotificationEvent.BOOKING_CANCELLED, {"booking_id": 1})

    assert received == [(NotificationEvent.BOOKING_CREATED, {"booking_id": 1})]


def test_failing_handler_does_not_stop_delivery():
    received = []

    def broken(event, payload):
        raise RuntimeError("smtp down")

    NotificationService.register_handler(NotificationEvent.SLOT_CONFLICT, broken)
    NotificationService.register_handler(NotificationEvent.SLOT_CONFLICT, lambda e, p: received.append(p))

    delivered = NotificationService.emit(NotificationEvent.SLOT_CONFLICT, {"doctor_id": 1})

    assert delivered == 1
    assert received == [{"doctor_id": 1}]
