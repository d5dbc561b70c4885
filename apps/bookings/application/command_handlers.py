"""
Booking Command Handlers

These are the use cases for the booking domain.
They orchestrate domain operations within transactions.

Commands:
- UpdateBookingCommand: Apply a staff member's partial update (fields and/or status)
- CommitCheckInCommand: Mark a verified guest as arrived
"""

from dataclasses import dataclass, replace
from typing import Callable
from uuid import UUID
import logging

from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from shared.application.uow import DjangoUnitOfWork
from apps.bookings.application.checkin_tokens import CheckInTokenService
from apps.bookings.domain.conflicts import TableConflictResolver
from apps.bookings.domain.entities import Actor, Booking, BookingStatus, Capability
from apps.bookings.domain.events import BookingAudited, BookingNotificationRequested
from apps.bookings.domain.exceptions import (
    BookingError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
    already_checked_in,
)
from apps.bookings.domain.repositories import (
    AbstractBookingRepository,
    AbstractTableRepository,
    WritePrecondition,
)
from apps.bookings.domain.state_machine import BookingStateMachine, TransitionResult

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class UpdateBookingCommand:
    """
    Command to update a booking

    patch holds any subset of the editable fields plus an optional status.
    """
    booking_id: UUID
    patch: dict
    actor: Actor


@dataclass
class CommitCheckInCommand:
    """Command to commit a guest's arrival after their credential was verified"""
    booking_id: UUID
    actor: Actor


# ===== Command Handlers =====

class UpdateBookingHandler:
    """
    Handler for UpdateBooking command

    Strategy:
    1. Authorize the actor (cancel-only patches need cancel_bookings,
       everything else modify_bookings)
    2. Load the booking, lock the bookings on its date and run the pure
       transition, which consults the conflict resolver when tables change
       or the booking is reactivated
    3. Persist with a write conditional on the version that was read;
       a concurrent writer makes it fail instead of overwriting
    4. Hand audit and notification events to the unit of work, which
       publishes them after commit
    """

    def __init__(
        self,
        booking_repo: AbstractBookingRepository,
        table_repo: AbstractTableRepository,
        state_machine: BookingStateMachine | None = None,
        token_service_factory: Callable[[], CheckInTokenService] = CheckInTokenService.from_settings,
        uow_factory=DjangoUnitOfWork,
        clock: Callable = timezone.now,
    ):
        self.booking_repo = booking_repo
        self.table_repo = table_repo
        self.state_machine = state_machine or BookingStateMachine.from_settings()
        self.token_service_factory = token_service_factory
        self.uow_factory = uow_factory
        self.clock = clock

    def handle(self, command: UpdateBookingCommand) -> TransitionResult:
        """
        Handle a booking update

        Returns: TransitionResult whose booking is the stored record

        Raises:
            AuthorizationError, NotFoundError, ValidationError, ConflictError
        """
        actor = command.actor
        actor.require(self._required_capability(command.patch))

        logger.info(
            f"Updating booking {command.booking_id} by {actor.id}, "
            f"fields: {sorted(command.patch)}"
        )

        now = self.clock()
        with self.uow_factory() as uow:
            current = self.booking_repo.get(command.booking_id)
            if not current:
                raise NotFoundError(f"Booking {command.booking_id} not found")
            self.booking_repo.lock_date(current.booking_date)

            result = self.state_machine.transition(
                current,
                command.patch,
                actor=actor,
                now=now,
                conflict_resolver=TableConflictResolver(self.booking_repo),
            )
            if not result.changes:
                logger.info(f"No changes for booking {current.booking_ref}")
                return result

            stored = self.booking_repo.conditional_update(
                current.id,
                result.changes,
                WritePrecondition(version=current.version),
            )
            if stored is None:
                logger.warning(
                    f"Stale write rejected for booking {current.booking_ref} "
                    f"(version {current.version})"
                )
                raise ConflictError(
                    'Booking was modified concurrently, reload and try again',
                    booking_ref=current.booking_ref,
                )

            uow.add_events(self._attach_credentials(stored, result.events, now))

        logger.info(
            f"Booking {stored.booking_ref} updated: {', '.join(result.changed_fields)}"
        )
        return replace(result, booking=stored)

    def _required_capability(self, patch: dict) -> Capability:
        if set(patch) == {'status'} and patch['status'] == BookingStatus.CANCELLED.value:
            return Capability.CANCEL_BOOKINGS
        return Capability.MODIFY_BOOKINGS

    def _attach_credentials(self, booking: Booking, events, now) -> list:
        """Put check-in payloads into the confirmation email's template data"""
        enriched = []
        for event in events:
            if (
                isinstance(event, BookingNotificationRequested)
                and event.notification_type == 'booking_confirmation'
            ):
                try:
                    tables = self.table_repo.get_many(booking.table_ids)
                    issued = self.token_service_factory().issue(booking, tables, now=now)
                    event = replace(event, template_data={
                        **event.template_data,
                        'qr_data': issued.modern.to_json(),
                        'legacy_qr_data': issued.legacy.to_json(),
                        'check_in_url': issued.modern.check_in_url,
                        'table_numbers': [table.table_number for table in tables],
                    })
                except (BookingError, ImproperlyConfigured) as e:
                    # The confirmation still goes out without a code
                    logger.error(
                        f"Could not issue check-in credentials for {booking.booking_ref}: {e}",
                        exc_info=True,
                    )
            enriched.append(event)
        return enriched


class CommitCheckInHandler:
    """
    Handler for committing a guest's arrival

    The write only applies while the booking is still CONFIRMED with no
    checked_in_at, so of two concurrent scans exactly one wins. The loser
    reloads the record and gets the "already checked in" conflict.
    """

    def __init__(
        self,
        booking_repo: AbstractBookingRepository,
        uow_factory=DjangoUnitOfWork,
        clock: Callable = timezone.now,
    ):
        self.booking_repo = booking_repo
        self.uow_factory = uow_factory
        self.clock = clock

    def handle(self, command: CommitCheckInCommand) -> Booking:
        """
        Check the guest in

        Returns: the stored booking in ARRIVED status

        Raises:
            AuthorizationError, NotFoundError, ValidationError (not today),
            ConflictError (already checked in), StateError (not confirmed)
        """
        actor = command.actor
        actor.require(Capability.CHECK_IN_CUSTOMERS)
        logger.info(f"Checking in booking {command.booking_id} by {actor.id}")

        now = self.clock()
        with self.uow_factory() as uow:
            current = self.booking_repo.get(command.booking_id)
            if not current:
                raise NotFoundError(f"Booking {command.booking_id} not found")
            self._ensure_checkable(current, now)

            stored = self.booking_repo.conditional_update(
                current.id,
                {'status': BookingStatus.ARRIVED, 'checked_in_at': now},
                WritePrecondition(status=BookingStatus.CONFIRMED, not_checked_in=True),
            )
            if stored is None:
                raise self._lost_race(current.id)

            uow.add_events([
                BookingAudited(
                    aggregate_id=stored.id,
                    occurred_at=now,
                    booking_id=stored.id,
                    action='customer_check_in',
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    old_values=current.snapshot(),
                    new_values={
                        **stored.snapshot(),
                        'checked_in_at': now.isoformat(),
                        'checked_in_by': actor.email or actor.id,
                    },
                )
            ])

        logger.info(f"Booking {stored.booking_ref} checked in at {now.isoformat()}")
        return stored

    def _ensure_checkable(self, booking: Booking, now):
        if booking.is_checked_in:
            raise already_checked_in(booking)
        if booking.status != BookingStatus.CONFIRMED:
            raise StateError(f"Cannot check in booking with status: {booking.status.value}")
        if booking.booking_date != timezone.localdate(now):
            raise ValidationError(
                'Booking is not valid for today',
                booking_date=booking.booking_date.isoformat(),
            )

    def _lost_race(self, booking_id: UUID) -> Exception:
        latest = self.booking_repo.get(booking_id)
        if latest is None:
            return NotFoundError(f"Booking {booking_id} not found")
        if latest.is_checked_in:
            logger.warning(f"Concurrent check-in lost for booking {latest.booking_ref}")
            return already_checked_in(latest)
        return StateError(f"Cannot check in booking with status: {latest.status.value}")

