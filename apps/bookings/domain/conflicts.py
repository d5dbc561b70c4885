"""
Table Conflict Resolver

This is the CRITICAL check for preventing double-claimed tables.
Every change that puts tables under an active booking goes through it.

Strategy:
1. Domain validation: check_conflict() intersects table sets of every
   active booking on the same date
2. Pessimistic locking: the update handler locks every booking on the
   date (SELECT FOR UPDATE) before this check, so reassigning two
   different bookings to the same table cannot interleave
3. Optimistic concurrency: the write that follows is conditional on the
   record's version, so a stale read of the same booking is never stored
"""

from dataclasses import dataclass
from datetime import date
from typing import Iterable
from uuid import UUID
import logging

from shared.domain.base import ValueObject
from apps.bookings.domain.entities import ACTIVE_STATUSES
from apps.bookings.domain.exceptions import ConflictError
from apps.bookings.domain.repositories import AbstractBookingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Conflict(ValueObject):
    """Another active booking already holds some of the requested tables"""
    conflicting_booking_ref: str
    overlapping_table_ids: tuple[int, ...]

    def to_error(self) -> ConflictError:
        return ConflictError(
            f"Table conflict with booking {self.conflicting_booking_ref}",
            conflicting_booking_ref=self.conflicting_booking_ref,
            conflicting_tables=list(self.overlapping_table_ids),
        )


class TableConflictResolver:
    """
    Detects table double-booking on a single date

    Usage:
        resolver = TableConflictResolver(booking_repo)
        conflict = resolver.check_conflict({5, 6}, booking.booking_date, booking.id)
        if conflict:
            raise conflict.to_error()
    """

    def __init__(self, booking_repo: AbstractBookingRepository):
        self.booking_repo = booking_repo

    def check_conflict(
        self,
        candidate_table_ids: Iterable[int],
        booking_date: date,
        excluding_booking_id: UUID | None = None,
    ) -> Conflict | None:
        """
        Return the first active booking on booking_date sharing a table, if any

        Pending, confirmed and arrived bookings hold their tables;
        cancelled and no-show bookings do not.
        """
        candidates = set(candidate_table_ids)
        if not candidates:
            return None

        for other in self.booking_repo.list_by_date_and_status(booking_date, ACTIVE_STATUSES):
            if other.id == excluding_booking_id:
                continue
            overlap = candidates.intersection(other.table_ids)
            if overlap:
                conflict = Conflict(
                    conflicting_booking_ref=other.booking_ref,
                    overlapping_table_ids=tuple(sorted(overlap)),
                )
                logger.warning(
                    f"Tables {list(conflict.overlapping_table_ids)} on {booking_date} "
                    f"already held by booking {other.booking_ref}"
                )
                return conflict
        return None

    def ensure_available(
        self,
        candidate_table_ids: Iterable[int],
        booking_date: date,
        excluding_booking_id: UUID | None = None,
    ):
        """Raise ConflictError when check_conflict() finds an overlap"""
        conflict = self.check_conflict(candidate_table_ids, booking_date, excluding_booking_id)
        if conflict:
            raise conflict.to_error()
