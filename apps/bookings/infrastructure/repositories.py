"""
Django ORM Repositories

Map between ORM rows and domain entities. The booking repository's
conditional_update is a single UPDATE ... WHERE, so the predicate check
and the write happen atomically in the database.
"""

from datetime import date
from typing import Any, Iterable, Mapping
from uuid import UUID
import logging

from django.db.models import F
from django.utils import timezone

from apps.bookings.domain.entities import Booking, BookingStatus, TableInfo
from apps.bookings.domain.repositories import (
    AbstractBookingRepository,
    AbstractTableRepository,
    WritePrecondition,
)
from apps.bookings.models import Booking as BookingModel
from apps.venues.models import VenueTable

logger = logging.getLogger(__name__)


def booking_from_model(row: BookingModel) -> Booking:
    """Convert an ORM row to a domain entity"""
    return Booking(
        id=row.id,
        booking_ref=row.booking_ref,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        party_size=row.party_size,
        booking_date=row.booking_date,
        arrival_time=row.arrival_time,
        table_ids=tuple(row.table_ids or ()),
        status=BookingStatus(row.status),
        special_requests=row.special_requests,
        drinks_package=row.drinks_package,
        deposit_amount=row.deposit_amount,
        package_amount=row.package_amount,
        remaining_balance=row.remaining_balance,
        checked_in_at=row.checked_in_at,
        cancelled_at=row.cancelled_at,
        refund_eligible=row.refund_eligible,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _column_values(changes: Mapping[str, Any]) -> dict:
    values = {}
    for name, value in changes.items():
        if isinstance(value, BookingStatus):
            value = value.value
        elif name == 'table_ids':
            value = list(value)
        values[name] = value
    return values


class DjangoBookingRepository(AbstractBookingRepository):
    """Booking store backed by apps.bookings.models.Booking"""

    def get(self, booking_id: UUID) -> Booking | None:
        row = BookingModel.objects.filter(pk=booking_id).first()
        return booking_from_model(row) if row else None

    def get_by_reference(self, booking_ref: str, booking_date: date) -> Booking | None:
        row = BookingModel.objects.filter(booking_ref=booking_ref, booking_date=booking_date).first()
        return booking_from_model(row) if row else None

    def list_by_date_and_status(
        self,
        booking_date: date,
        statuses: Iterable[BookingStatus],
    ) -> list[Booking]:
        rows = BookingModel.objects.filter(
            booking_date=booking_date,
            status__in=[status.value for status in statuses],
        ).order_by('arrival_time', 'created_at')
        return [booking_from_model(row) for row in rows]

    def lock_date(self, booking_date: date):
        # No effect on SQLite, which has no SELECT ... FOR UPDATE
        list(
            BookingModel.objects.select_for_update()
            .filter(booking_date=booking_date)
            .values_list('pk', flat=True)
        )

    def conditional_update(
        self,
        booking_id: UUID,
        changes: Mapping[str, Any],
        precondition: WritePrecondition,
    ) -> Booking | None:
        queryset = BookingModel.objects.filter(pk=booking_id)
        if precondition.version is not None:
            queryset = queryset.filter(version=precondition.version)
        if precondition.status is not None:
            queryset = queryset.filter(status=precondition.status.value)
        if precondition.not_checked_in:
            queryset = queryset.filter(checked_in_at__isnull=True)

        values = _column_values(changes)
        values.pop('updated_at', None)
        updated = queryset.update(
            **values,
            version=F('version') + 1,
            updated_at=timezone.now(),
        )
        if updated != 1:
            logger.warning(f"Conditional update of booking {booking_id} matched no row")
            return None
        return self.get(booking_id)


def table_from_model(row: VenueTable) -> TableInfo:
    return TableInfo(
        id=row.id,
        table_number=row.table_number,
        floor=row.floor,
        capacity_min=row.capacity_min,
        capacity_max=row.capacity_max,
    )


class DjangoTableRepository(AbstractTableRepository):
    """Venue tables backed by apps.venues.models.VenueTable"""

    def get_many(self, table_ids: Iterable[int]) -> list[TableInfo]:
        ids = list(table_ids)
        if not ids:
            return []
        rows = VenueTable.objects.filter(pk__in=ids).order_by('table_number')
        return [table_from_model(row) for row in rows]
