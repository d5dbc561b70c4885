"""
Message bus wiring for the booking domain

Called once from BookingsConfig.ready().
"""

from shared.application.message_bus import MessageBus, message_bus
from apps.bookings.application.command_handlers import (
    CommitCheckInCommand,
    CommitCheckInHandler,
    UpdateBookingCommand,
    UpdateBookingHandler,
)
from apps.bookings.application.event_handlers import queue_notification, record_audit_event
from apps.bookings.domain.events import BookingAudited, BookingNotificationRequested


def _update_booking(command: UpdateBookingCommand):
    from apps.bookings.infrastructure.repositories import DjangoBookingRepository, DjangoTableRepository

    return UpdateBookingHandler(DjangoBookingRepository(), DjangoTableRepository()).handle(command)


def _commit_check_in(command: CommitCheckInCommand):
    from apps.bookings.infrastructure.repositories import DjangoBookingRepository

    return CommitCheckInHandler(DjangoBookingRepository()).handle(command)


def register_handlers(bus: MessageBus = message_bus) -> MessageBus:
    """Register booking command and event handlers. Safe to call twice."""
    if not bus.has_command_handler(UpdateBookingCommand):
        bus.register_command_handler(UpdateBookingCommand, _update_booking)
    if not bus.has_command_handler(CommitCheckInCommand):
        bus.register_command_handler(CommitCheckInCommand, _commit_check_in)

    bus.register_event_handler(BookingAudited, record_audit_event)
    bus.register_event_handler(BookingNotificationRequested, queue_notification)
    return bus
