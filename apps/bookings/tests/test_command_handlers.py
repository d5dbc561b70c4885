"""Tests for the booking update and check-in use cases."""

from __future__ import annotations

import json
import threading
from dataclasses import replace
from datetime import date, timedelta

import pytest

from apps.bookings.application.checkin_tokens import CheckInTokenService
from apps.bookings.application.command_handlers import (
    CommitCheckInCommand,
    CommitCheckInHandler,
    UpdateBookingCommand,
    UpdateBookingHandler,
)
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.events import BookingAudited, BookingNotificationRequested
from apps.bookings.domain.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StateError,
    ValidationError,
)
from apps.bookings.domain.state_machine import BookingStateMachine

from .fakes import (
    DOOR_STAFF,
    MANAGER,
    FakeUnitOfWork,
    InMemoryBookingRepository,
    InMemoryTableRepository,
    aware,
    default_tables,
    make_booking,
)

NOW = aware(2025, 6, 14, 22, 10)


def token_service() -> CheckInTokenService:
    return CheckInTokenService(
        "handler-test-signing-key-0123456789abcdef",
        issuer="The Backroom Leeds",
        audience="booking-checkin",
        venue_id="backroom-leeds",
        venue_name="The Backroom Leeds",
        base_url="https://bookings.example.com",
    )


class StaleReadRepository(InMemoryBookingRepository):
    """Hands out a snapshot one version behind, as if another writer got in first."""

    def get(self, booking_id):
        booking = super().get(booking_id)
        return replace(booking, version=booking.version - 1) if booking else None


class RacingRepository(InMemoryBookingRepository):
    """Holds the first round of reads until every racer has loaded the booking."""

    def __init__(self, bookings, parties: int):
        super().__init__(bookings)
        self.barrier = threading.Barrier(parties)
        self._reads = 0

    def get(self, booking_id):
        booking = super().get(booking_id)
        with self._lock:
            self._reads += 1
            first_round = self._reads <= self.barrier.parties
        if first_round:
            self.barrier.wait(timeout=5)
        return booking


class RecordingRepository(InMemoryBookingRepository):
    """Logs the order of locks, conflict reads and writes."""

    def __init__(self, bookings):
        super().__init__(bookings)
        self.calls: list[str] = []

    def lock_date(self, booking_date):
        self.calls.append("lock")
        super().lock_date(booking_date)

    def list_by_date_and_status(self, booking_date, statuses):
        self.calls.append("read")
        return super().list_by_date_and_status(booking_date, statuses)

    def conditional_update(self, booking_id, changes, precondition):
        self.calls.append("write")
        return super().conditional_update(booking_id, changes, precondition)


@pytest.fixture
def published() -> list:
    return []


def update_handler(repo, published, now=NOW) -> UpdateBookingHandler:
    return UpdateBookingHandler(
        repo,
        InMemoryTableRepository(default_tables()),
        state_machine=BookingStateMachine(),
        token_service_factory=token_service,
        uow_factory=lambda: FakeUnitOfWork(published),
        clock=lambda: now,
    )


def check_in_handler(repo, published, now=NOW) -> CommitCheckInHandler:
    return CommitCheckInHandler(
        repo,
        uow_factory=lambda: FakeUnitOfWork(published),
        clock=lambda: now,
    )


class TestUpdateBooking:
    def test_update_is_stored_and_events_published(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])

        result = update_handler(repo, published).handle(
            UpdateBookingCommand(booking.id, {"party_size": 6}, MANAGER)
        )

        assert result.booking.party_size == 6
        assert result.booking.version == 2
        assert repo.get(booking.id).party_size == 6
        assert [type(event) for event in published] == [BookingAudited]

    def test_missing_booking(self, published):
        repo = InMemoryBookingRepository()

        with pytest.raises(NotFoundError):
            update_handler(repo, published).handle(
                UpdateBookingCommand(make_booking().id, {"party_size": 6}, MANAGER)
            )

    def test_no_op_patch_writes_nothing(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])

        result = update_handler(repo, published).handle(
            UpdateBookingCommand(booking.id, {"party_size": 4}, MANAGER)
        )

        assert result.changes == {}
        assert repo.writes == 0
        assert published == []

    def test_stale_version_is_rejected(self, published):
        booking = make_booking()
        repo = StaleReadRepository([booking])

        with pytest.raises(ConflictError) as excinfo:
            update_handler(repo, published).handle(
                UpdateBookingCommand(booking.id, {"party_size": 6}, MANAGER)
            )

        assert excinfo.value.details["booking_ref"] == booking.booking_ref
        assert repo.writes == 0
        assert published == []

    def test_door_staff_cannot_modify(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])

        with pytest.raises(AuthorizationError):
            update_handler(repo, published).handle(
                UpdateBookingCommand(booking.id, {"party_size": 6}, DOOR_STAFF)
            )

    def test_door_staff_cannot_cancel(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])

        with pytest.raises(AuthorizationError) as excinfo:
            update_handler(repo, published).handle(
                UpdateBookingCommand(booking.id, {"status": "cancelled"}, DOOR_STAFF)
            )

        assert excinfo.value.details["required_capability"] == "cancel_bookings"

    def test_table_conflict_blocks_the_write(self, published):
        holder = make_booking(booking_ref="BRL-2025-AAAAA", table_ids=(5,))
        booking = make_booking(booking_ref="BRL-2025-BBBBB", table_ids=(6,))
        repo = InMemoryBookingRepository([holder, booking])

        with pytest.raises(ConflictError):
            update_handler(repo, published).handle(
                UpdateBookingCommand(booking.id, {"table_ids": [5]}, MANAGER)
            )

        assert repo.get(booking.id).table_ids == (6,)

    def test_night_is_locked_before_the_conflict_check(self, published):
        holder = make_booking(booking_ref="BRL-2025-AAAAA", table_ids=(5,))
        booking = make_booking(booking_ref="BRL-2025-BBBBB", table_ids=(6,))
        repo = RecordingRepository([holder, booking])

        update_handler(repo, published).handle(
            UpdateBookingCommand(booking.id, {"table_ids": [7]}, MANAGER)
        )

        assert repo.locked_dates == [booking.booking_date]
        assert repo.calls == ["lock", "read", "write"]

    def test_confirmation_carries_check_in_payloads(self, published):
        booking = make_booking(status=BookingStatus.PENDING, table_ids=(5, 6))
        repo = InMemoryBookingRepository([booking])

        update_handler(repo, published).handle(
            UpdateBookingCommand(booking.id, {"status": "confirmed"}, MANAGER)
        )

        [notification] = [e for e in published if isinstance(e, BookingNotificationRequested)]
        data = notification.template_data
        assert json.loads(data["qr_data"])["bookingId"] == str(booking.id)
        assert json.loads(data["legacy_qr_data"])["ref"] == booking.booking_ref
        assert data["check_in_url"].startswith("https://bookings.example.com/check-in/")
        assert data["table_numbers"] == [5, 6]

    def test_confirmation_without_credentials_still_notifies(self, published):
        booking = make_booking(status=BookingStatus.PENDING)
        repo = InMemoryBookingRepository([booking])
        handler = update_handler(repo, published)
        handler.token_service_factory = lambda: CheckInTokenService(
            "", issuer="i", audience="a", venue_id="v", venue_name="V", base_url="https://x"
        )

        handler.handle(UpdateBookingCommand(booking.id, {"status": "confirmed"}, MANAGER))

        [notification] = [e for e in published if isinstance(e, BookingNotificationRequested)]
        assert "qr_data" not in notification.template_data


class TestCommitCheckIn:
    def test_check_in_marks_arrival(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])

        stored = check_in_handler(repo, published).handle(CommitCheckInCommand(booking.id, DOOR_STAFF))

        assert stored.status == BookingStatus.ARRIVED
        assert stored.checked_in_at == NOW
        [audit] = published
        assert audit.action == "customer_check_in"
        assert audit.new_values["checked_in_by"] == DOOR_STAFF.email

    def test_second_check_in_is_a_conflict(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])
        handler = check_in_handler(repo, published)
        handler.handle(CommitCheckInCommand(booking.id, DOOR_STAFF))

        with pytest.raises(ConflictError) as excinfo:
            handler.handle(CommitCheckInCommand(booking.id, DOOR_STAFF))

        assert excinfo.value.details["checked_in_at"] == NOW.isoformat()
        assert repo.writes == 1

    def test_pending_booking_cannot_check_in(self, published):
        booking = make_booking(status=BookingStatus.PENDING)
        repo = InMemoryBookingRepository([booking])

        with pytest.raises(StateError):
            check_in_handler(repo, published).handle(CommitCheckInCommand(booking.id, DOOR_STAFF))

    def test_booking_for_another_night_is_rejected(self, published):
        booking = make_booking(booking_date=date(2025, 6, 13))
        repo = InMemoryBookingRepository([booking])

        with pytest.raises(ValidationError) as excinfo:
            check_in_handler(repo, published).handle(CommitCheckInCommand(booking.id, DOOR_STAFF))

        assert excinfo.value.message == "Booking is not valid for today"

    def test_after_midnight_the_booking_date_has_passed(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])
        after_midnight = aware(2025, 6, 15, 0, 30)

        with pytest.raises(ValidationError):
            check_in_handler(repo, published, now=after_midnight).handle(
                CommitCheckInCommand(booking.id, DOOR_STAFF)
            )

    def test_concurrent_scans_admit_exactly_once(self, published):
        booking = make_booking()
        racers = 2
        repo = RacingRepository([booking], parties=racers)
        handler = check_in_handler(repo, published)
        outcomes: list = []

        def scan():
            try:
                outcomes.append(handler.handle(CommitCheckInCommand(booking.id, DOOR_STAFF)))
            except ConflictError as e:
                outcomes.append(e)

        threads = [threading.Thread(target=scan) for _ in range(racers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        successes = [o for o in outcomes if not isinstance(o, ConflictError)]
        conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
        assert len(successes) == 1
        assert len(conflicts) == 1
        assert conflicts[0].message == "Customer already checked in"
        assert repo.writes == 1
        assert len(published) == 1

    def test_checked_in_timestamp_is_not_moved_by_later_scans(self, published):
        booking = make_booking()
        repo = InMemoryBookingRepository([booking])
        check_in_handler(repo, published).handle(CommitCheckInCommand(booking.id, DOOR_STAFF))

        with pytest.raises(ConflictError):
            check_in_handler(repo, published, now=NOW + timedelta(minutes=20)).handle(
                CommitCheckInCommand(booking.id, DOOR_STAFF)
            )

        assert repo.get(booking.id).checked_in_at == NOW
