"""
Repository Interfaces

Narrow data-access contracts used by the state machine, the conflict
resolver, the check-in verifier and search. Keeping them this small lets
every rule be exercised against an in-memory store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping
from uuid import UUID

from apps.bookings.domain.entities import Booking, BookingStatus, TableInfo


@dataclass(frozen=True)
class WritePrecondition:
    """
    Predicate a conditional write must satisfy to be applied

    - version: the record's version must still equal this value
    - status: the record must still be in this status
    - not_checked_in: checked_in_at must still be empty
    """
    version: int | None = None
    status: BookingStatus | None = None
    not_checked_in: bool = False

    def matches(self, booking: Booking) -> bool:
        if self.version is not None and booking.version != self.version:
            return False
        if self.status is not None and booking.status != self.status:
            return False
        if self.not_checked_in and booking.checked_in_at is not None:
            return False
        return True


class AbstractBookingRepository(ABC):
    """Booking store contract"""

    @abstractmethod
    def get(self, booking_id: UUID) -> Booking | None:
        """Load a booking by id, None if absent"""

    @abstractmethod
    def get_by_reference(self, booking_ref: str, booking_date: date) -> Booking | None:
        """Exact lookup by (booking_ref, booking_date)"""

    @abstractmethod
    def list_by_date_and_status(
        self,
        booking_date: date,
        statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        """All bookings on a date in one of the given statuses, ordered by arrival time"""

    def lock_date(self, booking_date: date):
        """
        Hold every booking on booking_date until the current transaction ends

        Writers that check table conflicts on the same date then run one at
        a time. Stores without row locks may leave this a no-op.
        """

    @abstractmethod
    def conditional_update(
        self,
        booking_id: UUID,
        changes: Mapping[str, Any],
        precondition: WritePrecondition,
    ) -> Booking | None:
        """
        Apply changes only if the stored record satisfies the precondition

        The check and the write must be atomic. On success the stored
        version is incremented and the fresh record returned; when the
        precondition no longer holds nothing is written and None is returned.
        """


class AbstractTableRepository(ABC):
    """Venue table reference data"""

    @abstractmethod
    def get_many(self, table_ids: Iterable[int]) -> list[TableInfo]:
        """Tables with the given ids, ordered by table number. Unknown ids are skipped."""
