"""
Booking State Machine

Pure transition function for booking updates:

    (current booking, patch, actor, now) -> TransitionResult(booking, changes, events)

Nothing here touches storage. The caller persists result.changes with a
conditional write and hands result.events to the unit of work.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, time, timedelta, tzinfo
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from django.conf import settings
from django.utils import timezone

from shared.domain.base import DomainEvent
from apps.bookings.domain.conflicts import TableConflictResolver
from apps.bookings.domain.entities import Actor, Booking, BookingStatus
from apps.bookings.domain.events import BookingAudited, BookingNotificationRequested
from apps.bookings.domain.exceptions import ValidationError

EDITABLE_FIELDS = (
    'customer_name',
    'customer_email',
    'customer_phone',
    'party_size',
    'arrival_time',
    'special_requests',
    'drinks_package',
    'package_amount',
    'table_ids',
)

MIN_PARTY_SIZE, MAX_PARTY_SIZE = 1, 20
MIN_TABLE_ID, MAX_TABLE_ID = 1, 16

NOTIFICATION_TYPES = {
    BookingStatus.CONFIRMED: 'booking_confirmation',
    BookingStatus.CANCELLED: 'cancellation_confirmation',
}


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of applying a patch to a booking"""
    booking: Booking
    changes: dict = field(default_factory=dict)
    events: tuple[DomainEvent, ...] = ()

    @property
    def changed_fields(self) -> tuple[str, ...]:
        return tuple(self.changes)

    @property
    def status_changed(self) -> bool:
        return 'status' in self.changes


class BookingStateMachine:
    """
    Governs booking status transitions and their derived fields

    Allowed transitions:
    - PENDING -> CONFIRMED, CANCELLED
    - CONFIRMED -> PENDING, CANCELLED, ARRIVED, NO_SHOW
    - CANCELLED -> CONFIRMED (re-confirmation)
    - ARRIVED -> CONFIRMED (correcting a mistaken check-in)
    - NO_SHOW -> CONFIRMED, only when allow_reconfirm_from_no_show is set

    Side effects of entering a status:
    - CANCELLED: cancelled_at = now, refund_eligible = arrival is at least
      refund_window away
    - ARRIVED: checked_in_at = now
    - CONFIRMED: cancelled_at cleared, refund_eligible reset to True
    """

    TRANSITIONS = {
        BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
        BookingStatus.CONFIRMED: frozenset({
            BookingStatus.PENDING,
            BookingStatus.CANCELLED,
            BookingStatus.ARRIVED,
            BookingStatus.NO_SHOW,
        }),
        BookingStatus.CANCELLED: frozenset({BookingStatus.CONFIRMED}),
        BookingStatus.ARRIVED: frozenset({BookingStatus.CONFIRMED}),
        BookingStatus.NO_SHOW: frozenset(),
    }

    def __init__(
        self,
        *,
        refund_window: timedelta = timedelta(hours=48),
        allow_reconfirm_from_no_show: bool = False,
        tz: tzinfo | None = None,
    ):
        self.refund_window = refund_window
        self.allow_reconfirm_from_no_show = allow_reconfirm_from_no_show
        self.tz = tz

    @classmethod
    def from_settings(cls) -> 'BookingStateMachine':
        policy = getattr(settings, 'BOOKING_POLICY', {})
        return cls(
            refund_window=timedelta(hours=policy.get('REFUND_WINDOW_HOURS', 48)),
            allow_reconfirm_from_no_show=policy.get('ALLOW_RECONFIRM_FROM_NO_SHOW', False),
        )

    def allowed_targets(self, current: BookingStatus) -> frozenset:
        targets = self.TRANSITIONS[current]
        if current == BookingStatus.NO_SHOW and self.allow_reconfirm_from_no_show:
            targets = targets | {BookingStatus.CONFIRMED}
        return targets

    def is_refund_eligible(self, booking: Booking, now: datetime) -> bool:
        """Cancellations at least refund_window before arrival get their deposit back"""
        return booking.arrival_at(self.tz) - now >= self.refund_window

    def transition(
        self,
        current: Booking,
        patch: Mapping[str, Any],
        *,
        actor: Actor,
        now: datetime | None = None,
        conflict_resolver: TableConflictResolver | None = None,
    ) -> TransitionResult:
        """
        Apply a partial update to a booking

        Raises:
            ValidationError: unknown field or status, disallowed transition,
                out-of-range values, or an active booking left without tables
            ConflictError: the resulting tables clash with another active
                booking on the same date (only when a resolver is given)
        """
        now = now or timezone.now()

        unknown = set(patch) - set(EDITABLE_FIELDS) - {'status'}
        if unknown:
            raise ValidationError(
                f"Unknown booking fields: {', '.join(sorted(unknown))}",
                fields=sorted(unknown),
            )

        changes: dict[str, Any] = {}
        for name in EDITABLE_FIELDS:
            if name not in patch:
                continue
            value = self._clean_field(name, patch[name])
            if name == 'table_ids':
                if set(value) != set(current.table_ids):
                    changes[name] = value
            elif value != getattr(current, name):
                changes[name] = value

        if 'package_amount' in changes:
            package = changes['package_amount'] or Decimal('0')
            changes['remaining_balance'] = package - current.deposit_amount

        target = self._parse_status(patch['status']) if patch.get('status') is not None else current.status
        if target != current.status:
            changes.update(self._enter_status(current, target, now))

        status = changes.get('status', current.status)
        table_ids = changes.get('table_ids', current.table_ids)
        if status.is_active and not table_ids:
            raise ValidationError(
                f"A {status.value} booking must hold at least one table",
                field='table_ids',
            )

        reactivated = status.is_active and not current.status.is_active
        if conflict_resolver is not None and ('table_ids' in changes or reactivated):
            conflict_resolver.ensure_available(table_ids, current.booking_date, current.id)

        if not changes:
            return TransitionResult(booking=current)

        updated = replace(current, updated_at=now, **changes)
        return TransitionResult(
            booking=updated,
            changes=changes,
            events=tuple(self._events_for(current, updated, actor, now)),
        )

    def _parse_status(self, value: Any) -> BookingStatus:
        if isinstance(value, BookingStatus):
            return value
        try:
            return BookingStatus(value)
        except ValueError:
            raise ValidationError(f"Unknown booking status: {value}", field='status')

    def _enter_status(self, current: Booking, target: BookingStatus, now: datetime) -> dict:
        if target not in self.allowed_targets(current.status):
            raise ValidationError(
                f"Cannot change booking from {current.status.value} to {target.value}",
                field='status',
                allowed=sorted(s.value for s in self.allowed_targets(current.status)),
            )

        changes: dict[str, Any] = {'status': target}
        if target == BookingStatus.CANCELLED:
            changes['cancelled_at'] = now
            changes['refund_eligible'] = self.is_refund_eligible(current, now)
        elif target == BookingStatus.ARRIVED:
            changes['checked_in_at'] = now
        elif target == BookingStatus.CONFIRMED:
            changes['cancelled_at'] = None
            changes['refund_eligible'] = True

        if current.status == BookingStatus.ARRIVED:
            changes['checked_in_at'] = None
        return changes

    def _clean_field(self, name: str, value: Any) -> Any:
        if name == 'customer_name':
            value = (value or '').strip()
            if not value:
                raise ValidationError("Customer name cannot be empty", field=name)
            return value

        if name in ('customer_email', 'customer_phone'):
            return (value or '').strip()

        if name == 'party_size':
            if isinstance(value, bool) or not isinstance(value, int) \
                    or not MIN_PARTY_SIZE <= value <= MAX_PARTY_SIZE:
                raise ValidationError(
                    f"Party size must be between {MIN_PARTY_SIZE} and {MAX_PARTY_SIZE}",
                    field=name,
                )
            return value

        if name == 'arrival_time':
            if isinstance(value, str):
                try:
                    value = time.fromisoformat(value)
                except ValueError:
                    raise ValidationError("Arrival time must be HH:MM", field=name)
            if not isinstance(value, time):
                raise ValidationError("Arrival time must be HH:MM", field=name)
            return value

        if name == 'table_ids':
            if value is None:
                return ()
            ids: list[int] = []
            for table_id in value:
                if isinstance(table_id, bool) or not isinstance(table_id, int) \
                        or not MIN_TABLE_ID <= table_id <= MAX_TABLE_ID:
                    raise ValidationError(
                        f"Table ids must be between {MIN_TABLE_ID} and {MAX_TABLE_ID}",
                        field=name,
                    )
                if table_id not in ids:
                    ids.append(table_id)
            return tuple(ids)

        if name == 'package_amount':
            if value is None:
                return None
            try:
                amount = Decimal(str(value))
            except InvalidOperation:
                raise ValidationError("Package amount must be a number", field=name)
            if amount < 0:
                raise ValidationError("Package amount cannot be negative", field=name)
            return amount

        return value

    def _events_for(self, old: Booking, new: Booking, actor: Actor, now: datetime) -> list[DomainEvent]:
        events: list[DomainEvent] = [
            BookingAudited(
                aggregate_id=new.id,
                occurred_at=now,
                booking_id=new.id,
                action='update_booking',
                actor_id=actor.id,
                actor_role=actor.role.value,
                old_values=old.snapshot(),
                new_values={**new.snapshot(), 'updated_by': actor.email or actor.id},
            )
        ]

        notification_type = NOTIFICATION_TYPES.get(new.status)
        if new.status != old.status and notification_type:
            verb = 'Confirmed' if new.status == BookingStatus.CONFIRMED else 'Cancelled'
            events.append(BookingNotificationRequested(
                aggregate_id=new.id,
                occurred_at=now,
                booking_id=new.id,
                notification_type=notification_type,
                recipient_email=new.customer_email,
                subject=f"Booking {verb} - {new.booking_ref}",
                body_text=f"Your booking status has been updated to {new.status.value}.",
                template_data={
                    'customer_name': new.customer_name,
                    'booking_ref': new.booking_ref,
                    'booking_date': new.booking_date.isoformat(),
                    'arrival_time': new.arrival_time.strftime('%H:%M'),
                    'status': new.status.value,
                    'refund_eligible': new.refund_eligible,
                    'updated_by_staff': actor.email or actor.id,
                    'updated_at': now.isoformat(),
                },
            ))
        return events
