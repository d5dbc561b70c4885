"""
Message Bus

Routes commands to their single handler and fans events out to subscribers.

Commands come from the API layer and their handlers' errors propagate to
the caller. Events arrive after a transaction commits; a failing subscriber
is logged and skipped so the remaining subscribers still run.
"""

from collections import defaultdict
from typing import Any, Callable, Iterable, Type
import logging

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]
CommandHandler = Callable[[Any], Any]


def _handler_name(handler: Callable) -> str:
    return getattr(handler, '__qualname__', None) or repr(handler)


class MessageBus:
    """
    Dispatch hub for commands (1:1) and events (1:N)

    Usage:
        bus.register_command_handler(UpdateBookingCommand, handler.handle)
        result = bus.handle_command(UpdateBookingCommand(...))

        bus.register_event_handler(BookingAudited, record_audit_event)
        bus.publish_events(events)
    """

    def __init__(self):
        self._command_handlers: dict[Type, CommandHandler] = {}
        self._event_handlers: defaultdict[Type[DomainEvent], list[EventHandler]] = defaultdict(list)

    # ===== Commands =====

    def register_command_handler(self, command_type: Type, handler: CommandHandler):
        if command_type in self._command_handlers:
            raise ValueError(f"{command_type.__name__} already has a handler")
        self._command_handlers[command_type] = handler
        logger.debug(f"{command_type.__name__} -> {_handler_name(handler)}")

    def has_command_handler(self, command_type: Type) -> bool:
        return command_type in self._command_handlers

    def handle_command(self, command: Any) -> Any:
        """Run the command's handler and return its result"""
        name = type(command).__name__
        handler = self._command_handlers.get(type(command))
        if handler is None:
            raise ValueError(f"No handler registered for command {name}")

        logger.info(f"Handling {name}")
        try:
            return handler(command)
        except Exception as e:
            logger.warning(f"{name} failed: {e}")
            raise

    # ===== Events =====

    def register_event_handler(self, event_type: Type[DomainEvent], handler: EventHandler):
        """Subscribe handler to event_type and its subclasses; duplicates are ignored"""
        subscribers = self._event_handlers[event_type]
        if handler not in subscribers:
            subscribers.append(handler)
            logger.debug(f"{event_type.__name__} -> {_handler_name(handler)}")

    def subscribers_for(self, event: DomainEvent) -> list[EventHandler]:
        found: list[EventHandler] = []
        for event_type in type(event).__mro__:
            for handler in self._event_handlers.get(event_type, ()):
                if handler not in found:
                    found.append(handler)
        return found

    def publish_events(self, events: Iterable[DomainEvent]):
        for event in events:
            subscribers = self.subscribers_for(event)
            if not subscribers:
                logger.warning(f"No subscribers for {event.event_type} ({event.event_id})")
                continue

            logger.info(f"Publishing {event.event_type} ({event.event_id}) to {len(subscribers)} subscriber(s)")
            for handler in subscribers:
                try:
                    handler(event)
                except Exception as e:
                    logger.error(
                        f"Subscriber {_handler_name(handler)} failed on {event.event_type}: {e}; "
                        f"event={event.to_dict()}",
                        exc_info=True,
                    )


# Process-wide bus, wired up by BookingsConfig.ready()
message_bus = MessageBus()
