"""Unit tests for check-in credential issuance and decoding."""

from __future__ import annotations

import json
from datetime import timedelta

import jwt
import pytest
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from apps.bookings.application.checkin_tokens import CheckInTokenService
from apps.bookings.domain.entities import BookingStatus
from apps.bookings.domain.exceptions import StateError, TokenError

from .fakes import aware, default_tables, make_booking

SECRET = "unit-test-signing-key-0123456789abcdef"
ISSUED_AT = aware(2025, 6, 14, 12, 0)


@pytest.fixture
def service() -> CheckInTokenService:
    return CheckInTokenService(
        SECRET,
        issuer="The Backroom Leeds",
        audience="booking-checkin",
        venue_id="backroom-leeds",
        venue_name="The Backroom Leeds",
        base_url="https://bookings.example.com/",
    )


def tables_for(booking):
    return [table for table in default_tables() if table.id in booking.table_ids]


def test_issue_builds_modern_envelope(service):
    booking = make_booking(table_ids=(6, 5))

    issued = service.issue(booking, tables_for(booking), now=ISSUED_AT)

    envelope = json.loads(issued.modern.to_json())
    assert envelope["bookingId"] == str(booking.id)
    assert envelope["venue"] == "The Backroom Leeds"
    assert envelope["checkInUrl"] == f"https://bookings.example.com/check-in/{envelope['token']}"


def test_token_claims_are_signed_and_scoped(service):
    booking = make_booking(table_ids=(5, 6))

    issued = service.issue(booking, tables_for(booking), now=ISSUED_AT)
    claims = jwt.decode(
        issued.modern.token,
        SECRET,
        algorithms=["HS256"],
        audience="booking-checkin",
        issuer="The Backroom Leeds",
        options={"verify_exp": False},
    )

    assert claims["bookingId"] == str(booking.id)
    assert claims["tableNumbers"] == [5, 6]
    assert claims["guestName"] == "Jane Smith"
    assert claims["eventDate"] == "2025-06-14"
    assert claims["partySize"] == 4
    assert claims["venueId"] == "backroom-leeds"
    assert claims["exp"] - claims["iat"] == 48 * 3600


def test_legacy_payload_uses_first_table(service):
    booking = make_booking(table_ids=(5, 6))

    legacy = service.issue(booking, tables_for(booking), now=ISSUED_AT).legacy

    assert legacy.to_dict() == {
        "ref": "BRL-2025-A1B2C",
        "table": 5,
        "time": "22:00",
        "size": 4,
        "name": "Jane Smith",
        "date": "2025-06-14",
    }


def test_legacy_table_is_zero_without_tables(service):
    assert service.issue(make_booking(), [], now=ISSUED_AT).legacy.table == 0


@pytest.mark.parametrize("status", [BookingStatus.PENDING, BookingStatus.CANCELLED, BookingStatus.ARRIVED])
def test_only_confirmed_bookings_get_credentials(service, status):
    with pytest.raises(StateError):
        service.issue(make_booking(status=status), [], now=ISSUED_AT)


def test_decode_round_trip(service):
    booking = make_booking()
    token = service.issue(booking, []).modern.token

    assert service.decode(token)["bookingId"] == str(booking.id)


def test_expired_token_reports_expired():
    service = CheckInTokenService(
        SECRET,
        issuer="The Backroom Leeds",
        audience="booking-checkin",
        venue_id="backroom-leeds",
        venue_name="The Backroom Leeds",
        base_url="https://bookings.example.com",
        lifetime=timedelta(seconds=-1),
    )
    token = service.issue(make_booking(), []).modern.token

    with pytest.raises(TokenError) as excinfo:
        service.decode(token)

    assert excinfo.value.reason == TokenError.EXPIRED


@pytest.mark.parametrize(
    "claims_override",
    [
        {"iss": "Someone Else"},
        {"aud": "payments"},
    ],
)
def test_wrong_issuer_or_audience_is_invalid(service, claims_override):
    now = int(timezone.now().timestamp())
    claims = {"bookingId": "x", "iat": now, "exp": now + 3600, "iss": "The Backroom Leeds", "aud": "booking-checkin"}
    token = jwt.encode({**claims, **claims_override}, SECRET, algorithm="HS256")

    with pytest.raises(TokenError) as excinfo:
        service.decode(token)

    assert excinfo.value.reason == TokenError.INVALID


def test_forged_signature_is_invalid(service):
    token = service.issue(make_booking(), []).modern.token
    forged = jwt.encode(
        jwt.decode(token, options={"verify_signature": False}),
        "a-different-secret-of-sufficient-length",
        algorithm="HS256",
    )

    with pytest.raises(TokenError) as excinfo:
        service.decode(forged)

    assert excinfo.value.reason == TokenError.INVALID


def test_garbage_is_invalid(service):
    with pytest.raises(TokenError) as excinfo:
        service.decode("not-a-token")

    assert excinfo.value.reason == TokenError.INVALID


def test_missing_signing_key_is_a_configuration_error():
    with pytest.raises(ImproperlyConfigured):
        CheckInTokenService(
            "",
            issuer="i",
            audience="a",
            venue_id="v",
            venue_name="V",
            base_url="https://example.com",
        )


def test_from_settings_reads_checkin_token_config(settings):
    settings.CHECKIN_TOKEN = {
        "SIGNING_KEY": SECRET,
        "ALGORITHM": "HS256",
        "ISSUER": "The Backroom Leeds",
        "AUDIENCE": "booking-checkin",
        "LIFETIME": timedelta(hours=48),
        "BASE_URL": "https://door.example.com",
    }

    service = CheckInTokenService.from_settings()

    assert service.signing_key == SECRET
    assert service.base_url == "https://door.example.com"
    assert service.venue_id == settings.VENUE_ID
