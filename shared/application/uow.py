"""
Unit of Work

A use case opens one unit of work, performs its writes inside it and
queues the events those writes produced. Leaving the block normally
commits; an exception rolls back and drops the queued events.
"""

from abc import ABC, abstractmethod
from functools import partial
from typing import Iterable
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Transaction boundary that owns the events raised inside it"""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()

    @abstractmethod
    def commit(self):
        """Make the writes durable and release the queued events"""

    @abstractmethod
    def rollback(self):
        """Abandon the writes and the queued events"""

    @abstractmethod
    def add_events(self, events: Iterable[DomainEvent]):
        """Queue events to publish once the writes are durable"""


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work over a Django atomic block

    Queued events are handed to transaction.on_commit(), so subscribers run
    only after the outermost transaction commits. Inside a test case's
    wrapping transaction that means never, unless the test captures
    on-commit callbacks.

    Usage:
        with DjangoUnitOfWork() as uow:
            stored = booking_repo.conditional_update(booking.id, changes, precondition)
            uow.add_events(result.events)
    """

    def __init__(self, bus=None):
        self._bus = bus
        self._atomic = None
        self._pending: list[DomainEvent] = []

    def __enter__(self):
        self._atomic = transaction.atomic()
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            super().__exit__(exc_type, exc_val, exc_tb)
        finally:
            self._atomic.__exit__(exc_type, exc_val, exc_tb)
            self._atomic = None

    def commit(self):
        events, self._pending = self._pending, []
        if events:
            logger.debug(f"Scheduling {len(events)} event(s) for after commit")
            transaction.on_commit(partial(self._publish, events))

    def rollback(self):
        if self._pending:
            logger.warning(f"Rolled back, dropping {len(self._pending)} queued event(s)")
        self._pending = []

    def add_events(self, events: Iterable[DomainEvent]):
        self._pending.extend(events)

    def _publish(self, events: list[DomainEvent]):
        from shared.application.message_bus import message_bus

        bus = self._bus or message_bus
        try:
            bus.publish_events(events)
        except Exception as e:
            # The writes are already committed; nothing left to undo
            logger.error(f"Publishing {len(events)} committed event(s) failed: {e}", exc_info=True)
