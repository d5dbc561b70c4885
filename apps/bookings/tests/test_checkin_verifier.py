"""Tests for door-side credential verification."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import timedelta

import pytest
from django.utils import timezone

from apps.bookings.application.checkin_tokens import CheckInTokenService
from apps.bookings.application.checkin_verifier import CheckInVerifier
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.exceptions import (
    ConflictError,
    NotFoundError,
    StateError,
    TokenError,
    ValidationError,
)

from .fakes import (
    DOOR_STAFF,
    InMemoryBookingRepository,
    InMemoryTableRepository,
    default_tables,
    make_booking,
)


def build_service(signing_key: str = "verifier-test-signing-key-0123456789abcdef") -> CheckInTokenService:
    return CheckInTokenService(
        signing_key,
        issuer="The Backroom Leeds",
        audience="booking-checkin",
        venue_id="backroom-leeds",
        venue_name="The Backroom Leeds",
        base_url="https://bookings.example.com",
    )


@pytest.fixture
def service() -> CheckInTokenService:
    return build_service()


@pytest.fixture
def tonight():
    return make_booking(
        booking_date=timezone.localdate(),
        table_ids=(5, 6),
        special_requests="Birthday cake at midnight",
    )


@pytest.fixture
def repo(tonight) -> InMemoryBookingRepository:
    return InMemoryBookingRepository([tonight])


@pytest.fixture
def verifier(repo, service) -> CheckInVerifier:
    return CheckInVerifier(repo, InMemoryTableRepository(default_tables()), service)


def legacy_payload(booking, **overrides) -> dict:
    payload = {
        "ref": booking.booking_ref,
        "table": 5,
        "time": "22:00",
        "size": booking.party_size,
        "name": booking.customer_name,
        "date": booking.booking_date.isoformat(),
    }
    payload.update(overrides)
    return payload


class TestModernCredential:
    def test_valid_token_resolves_booking(self, verifier, service, tonight):
        envelope = service.issue(tonight).modern.to_json()

        package = verifier.verify(envelope, DOOR_STAFF)

        assert package.booking.id == tonight.id
        assert package.credential_format == "jwt"
        assert [table.table_number for table in package.tables] == [5, 6]
        assert package.has_special_requests is True
        assert package.has_drinks_package is False

    def test_package_serializes_for_the_door_ui(self, verifier, service, tonight):
        envelope = service.issue(tonight).modern.to_dict()

        data = verifier.verify(envelope, DOOR_STAFF).to_dict()

        assert data["valid"] is True
        assert data["booking"]["booking_ref"] == tonight.booking_ref
        assert len(data["tables"]) == 2

    def test_token_signed_with_another_key_is_invalid(self, verifier, tonight):
        envelope = build_service("someone-elses-signing-key-0123456789abcd").issue(tonight).modern.to_dict()

        with pytest.raises(TokenError) as excinfo:
            verifier.verify(envelope, DOOR_STAFF)

        assert excinfo.value.reason == "invalid"

    def test_expired_token(self, verifier, service, tonight):
        envelope = service.issue(tonight, now=timezone.now() - timedelta(hours=49)).modern.to_dict()

        with pytest.raises(TokenError) as excinfo:
            verifier.verify(envelope, DOOR_STAFF)

        assert excinfo.value.reason == "expired"
        assert excinfo.value.to_dict()["reason"] == "expired"

    def test_envelope_booking_id_must_match_token(self, verifier, service, tonight):
        envelope = service.issue(tonight).modern.to_dict()
        envelope["bookingId"] = str(make_booking().id)

        with pytest.raises(TokenError):
            verifier.verify(envelope, DOOR_STAFF)

    def test_token_for_deleted_booking(self, service, tonight):
        verifier = CheckInVerifier(InMemoryBookingRepository(), InMemoryTableRepository(), service)

        with pytest.raises(NotFoundError):
            verifier.verify(service.issue(tonight).modern.to_dict(), DOOR_STAFF)


class TestLegacyCredential:
    def test_matching_fields_resolve_booking(self, verifier, tonight):
        package = verifier.verify(json.dumps(legacy_payload(tonight)), DOOR_STAFF)

        assert package.booking.id == tonight.id
        assert package.credential_format == "legacy"

    def test_name_comparison_ignores_case(self, verifier, tonight):
        package = verifier.verify(legacy_payload(tonight, name="JANE SMITH"), DOOR_STAFF)

        assert package.booking.id == tonight.id

    def test_tampered_name_is_rejected(self, verifier, tonight):
        with pytest.raises(ValidationError) as excinfo:
            verifier.verify(legacy_payload(tonight, name="John Smith"), DOOR_STAFF)

        assert excinfo.value.details["field"] == "name"

    def test_tampered_reference_finds_nothing(self, verifier, tonight):
        with pytest.raises(NotFoundError):
            verifier.verify(legacy_payload(tonight, ref="BRL-2025-ZZZZZ"), DOOR_STAFF)

    def test_tampered_date_finds_nothing(self, verifier, tonight):
        other_night = (tonight.booking_date + timedelta(days=1)).isoformat()

        with pytest.raises(NotFoundError):
            verifier.verify(legacy_payload(tonight, date=other_night), DOOR_STAFF)

    def test_malformed_date(self, verifier, tonight):
        with pytest.raises(ValidationError) as excinfo:
            verifier.verify(legacy_payload(tonight, date="14/06/2025"), DOOR_STAFF)

        assert excinfo.value.details["field"] == "date"

    def test_compact_date_form_is_rejected(self, verifier, tonight):
        compact = tonight.booking_date.strftime("%Y%m%d")

        with pytest.raises(ValidationError) as excinfo:
            verifier.verify(legacy_payload(tonight, date=compact), DOOR_STAFF)

        assert excinfo.value.details["field"] == "date"


class TestPayloadShape:
    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", 42, None])
    def test_unreadable_payload(self, verifier, raw):
        with pytest.raises(ValidationError) as excinfo:
            verifier.verify(raw, DOOR_STAFF)

        assert excinfo.value.message == "Invalid QR code format"

    def test_unrecognized_payload(self, verifier):
        with pytest.raises(ValidationError) as excinfo:
            verifier.verify({"hello": "world"}, DOOR_STAFF)

        assert excinfo.value.message == "Unrecognized credential format"


class TestAdmission:
    def test_booking_for_another_night(self, service):
        booking = make_booking(booking_date=timezone.localdate() + timedelta(days=1))
        verifier = CheckInVerifier(
            InMemoryBookingRepository([booking]), InMemoryTableRepository(default_tables()), service
        )

        with pytest.raises(ValidationError) as excinfo:
            verifier.verify(service.issue(booking).modern.to_dict(), DOOR_STAFF)

        assert excinfo.value.message == "Booking is not valid for today"

    def test_already_checked_in(self, service, tonight):
        envelope = service.issue(tonight).modern.to_dict()
        arrived = replace(tonight, status=BookingStatus.ARRIVED, checked_in_at=timezone.now())
        verifier = CheckInVerifier(
            InMemoryBookingRepository([arrived]), InMemoryTableRepository(default_tables()), service
        )

        with pytest.raises(ConflictError) as excinfo:
            verifier.verify(envelope, DOOR_STAFF)

        assert excinfo.value.status_code == 409
        assert excinfo.value.details["booking"]["booking_ref"] == tonight.booking_ref

    def test_pending_booking(self, service):
        booking = make_booking(booking_date=timezone.localdate(), status=BookingStatus.PENDING)
        verifier = CheckInVerifier(
            InMemoryBookingRepository([booking]), InMemoryTableRepository(default_tables()), service
        )

        with pytest.raises(StateError):
            verifier.verify(legacy_payload(booking), DOOR_STAFF)

    def test_verification_does_not_write(self, verifier, service, repo, tonight):
        verifier.verify(service.issue(tonight).modern.to_dict(), DOOR_STAFF)

        assert repo.writes == 0
        assert repo.get(tonight.id).status == BookingStatus.CONFIRMED
