"""
Booking Search

Door-staff lookup and arrivals overview over tonight's active bookings.
Read only.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable
import logging

from django.conf import settings
from django.utils import timezone

from apps.bookings.domain.entities import Actor, Booking, BookingStatus, Capability, TableInfo
from apps.bookings.domain.exceptions import ValidationError
from apps.bookings.domain.repositories import AbstractBookingRepository, AbstractTableRepository

logger = logging.getLogger(__name__)

SEARCHABLE_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.ARRIVED})


class SearchScope(Enum):
    REFERENCE = 'reference'
    NAME = 'name'
    PHONE = 'phone'
    ALL = 'all'

    @classmethod
    def parse(cls, value: str | None) -> 'SearchScope':
        if not value:
            return cls.ALL
        if value == 'booking_ref':
            return cls.REFERENCE
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(f"Unknown search type: {value}", field='searchType')

    def fields(self) -> tuple[str, ...]:
        if self is SearchScope.REFERENCE:
            return ('booking_ref',)
        if self is SearchScope.NAME:
            return ('customer_name',)
        if self is SearchScope.PHONE:
            return ('customer_phone',)
        return ('booking_ref', 'customer_name', 'customer_phone')


@dataclass(frozen=True)
class SearchResult:
    booking: Booking
    tables: tuple[TableInfo, ...]
    is_late: bool
    can_check_in: bool

    def to_dict(self) -> dict:
        return {
            **self.booking.summary(),
            'tables': [table.to_dict() for table in self.tables],
            'is_late': self.is_late,
            'can_check_in': self.can_check_in,
            'has_special_requests': self.booking.has_special_requests,
            'has_drinks_package': self.booking.has_drinks_package,
        }


@dataclass(frozen=True)
class TonightSummary:
    """Every expected booking for one night, with arrival counts"""
    booking_date: date
    results: tuple[SearchResult, ...]
    generated_at: datetime

    @property
    def stats(self) -> dict:
        arrived = [r for r in self.results if r.booking.status == BookingStatus.ARRIVED]
        return {
            'total_expected': len(self.results),
            'arrived': len(arrived),
            'pending': sum(1 for r in self.results if r.booking.status == BookingStatus.CONFIRMED),
            'late': sum(1 for r in self.results if r.is_late),
            'total_guests': sum(r.booking.party_size for r in self.results),
            'arrived_guests': sum(r.booking.party_size for r in arrived),
        }

    def to_dict(self) -> dict:
        return {
            'booking_date': self.booking_date.isoformat(),
            'bookings': [result.to_dict() for result in self.results],
            'stats': self.stats,
            'last_updated': self.generated_at.isoformat(),
        }


class BookingSearch:
    """
    Case-insensitive contains search by reference, name or phone

    Usage:
        search = BookingSearch.from_settings(booking_repo, table_repo)
        results = search.search('smith', SearchScope.NAME, actor=actor)
    """

    def __init__(
        self,
        booking_repo: AbstractBookingRepository,
        table_repo: AbstractTableRepository,
        *,
        limit: int = 50,
        grace: timedelta = timedelta(minutes=30),
        clock: Callable = timezone.now,
    ):
        self.booking_repo = booking_repo
        self.table_repo = table_repo
        self.limit = limit
        self.grace = grace
        self.clock = clock

    @classmethod
    def from_settings(cls, booking_repo, table_repo, **kwargs) -> 'BookingSearch':
        policy = getattr(settings, 'BOOKING_POLICY', {})
        return cls(
            booking_repo,
            table_repo,
            limit=policy.get('SEARCH_RESULT_LIMIT', 50),
            grace=timedelta(minutes=policy.get('LATE_GRACE_MINUTES', 30)),
            **kwargs,
        )

    def search(
        self,
        query: str,
        scope: SearchScope = SearchScope.ALL,
        booking_date: date | None = None,
        *,
        actor: Actor,
    ) -> list[SearchResult]:
        actor.require(Capability.VIEW_BOOKINGS)

        needle = (query or '').strip().casefold()
        if not needle:
            raise ValidationError('Search query is required', field='query')

        now = self.clock()
        booking_date = booking_date or timezone.localdate(now)
        candidates = self.booking_repo.list_by_date_and_status(booking_date, SEARCHABLE_STATUSES)

        matches = [
            booking for booking in candidates
            if any(needle in (getattr(booking, name) or '').casefold() for name in scope.fields())
        ]
        matches.sort(key=lambda booking: booking.arrival_time)
        matches = matches[:self.limit]

        logger.debug(
            f"Search '{query}' ({scope.value}) on {booking_date}: {len(matches)} result(s)"
        )
        return [self._enrich(booking, now) for booking in matches]

    def tonight(self, booking_date: date | None = None, *, actor: Actor) -> TonightSummary:
        """All confirmed and arrived bookings for the night, in arrival order, uncapped"""
        actor.require(Capability.VIEW_BOOKINGS)

        now = self.clock()
        booking_date = booking_date or timezone.localdate(now)
        bookings = sorted(
            self.booking_repo.list_by_date_and_status(booking_date, SEARCHABLE_STATUSES),
            key=lambda booking: booking.arrival_time,
        )
        summary = TonightSummary(
            booking_date=booking_date,
            results=tuple(self._enrich(booking, now) for booking in bookings),
            generated_at=now,
        )
        logger.debug(f"Tonight overview for {booking_date}: {summary.stats}")
        return summary

    def _enrich(self, booking: Booking, now) -> SearchResult:
        return SearchResult(
            booking=booking,
            tables=tuple(self.table_repo.get_many(booking.table_ids)),
            is_late=not booking.is_checked_in and now > booking.arrival_at() + self.grace,
            can_check_in=booking.status == BookingStatus.CONFIRMED and not booking.is_checked_in,
        )
