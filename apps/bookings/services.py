"""Booking services used by the API layer.

Thin entry points that build the domain collaborators with their Django
implementations and dispatch commands through the message bus.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from shared.application.message_bus import message_bus
from apps.bookings.application.checkin_tokens import CheckInTokenService, IssuedCredentials
from apps.bookings.application.checkin_verifier import CheckInVerifier, VerifiedPackage
from apps.bookings.application.command_handlers import CommitCheckInCommand, UpdateBookingCommand
from apps.bookings.application.search import BookingSearch, SearchResult, SearchScope, TonightSummary
from apps.bookings.domain.entities import Actor, Booking, BookingStatus, Capability
from apps.bookings.domain.exceptions import NotFoundError
from apps.bookings.domain.state_machine import TransitionResult
from apps.bookings.infrastructure.repositories import DjangoBookingRepository, DjangoTableRepository


def update_booking(booking_id: UUID, patch: dict, actor: Actor) -> TransitionResult:
    return message_bus.handle_command(UpdateBookingCommand(booking_id=booking_id, patch=patch, actor=actor))


def cancel_booking(booking_id: UUID, actor: Actor) -> TransitionResult:
    return update_booking(booking_id, {"status": BookingStatus.CANCELLED.value}, actor)


def commit_check_in(booking_id: UUID, actor: Actor) -> Booking:
    return message_bus.handle_command(CommitCheckInCommand(booking_id=booking_id, actor=actor))


def verify_check_in(raw: Any, actor: Actor) -> VerifiedPackage:
    verifier = CheckInVerifier(
        DjangoBookingRepository(),
        DjangoTableRepository(),
        CheckInTokenService.from_settings(),
    )
    return verifier.verify(raw, actor)


def search_bookings(
    query: str,
    scope: SearchScope,
    booking_date: date | None,
    actor: Actor,
) -> list[SearchResult]:
    search = BookingSearch.from_settings(DjangoBookingRepository(), DjangoTableRepository())
    return search.search(query, scope, booking_date, actor=actor)


def tonight_bookings(booking_date: date | None, actor: Actor) -> TonightSummary:
    search = BookingSearch.from_settings(DjangoBookingRepository(), DjangoTableRepository())
    return search.tonight(booking_date, actor=actor)


def issue_credentials(booking_id: UUID, actor: Actor) -> IssuedCredentials:
    """Mint the check-in payloads for a confirmed booking."""
    actor.require(Capability.VIEW_BOOKINGS)
    booking = DjangoBookingRepository().get(booking_id)
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    tables = DjangoTableRepository().get_many(booking.table_ids)
    return CheckInTokenService.from_settings().issue(booking, tables)
