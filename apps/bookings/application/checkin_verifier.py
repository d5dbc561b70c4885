"""
Check-in Verifier

Validates a scanned credential at the door. Verification is read-only:
committing the arrival is a separate call (CommitCheckInHandler).
"""

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable
from uuid import UUID
import json
import logging

from django.utils import timezone

from apps.bookings.application.checkin_tokens import CheckInTokenService
from apps.bookings.domain.entities import Actor, Booking, BookingStatus, Capability, TableInfo
from apps.bookings.domain.exceptions import (
    NotFoundError,
    StateError,
    TokenError,
    ValidationError,
    already_checked_in,
)
from apps.bookings.domain.repositories import AbstractBookingRepository, AbstractTableRepository

logger = logging.getLogger(__name__)

JWT_FORMAT = 'jwt'
LEGACY_FORMAT = 'legacy'


@dataclass(frozen=True)
class VerifiedPackage:
    """Everything the door UI shows once a credential checks out"""
    booking: Booking
    tables: tuple[TableInfo, ...]
    credential_format: str

    @property
    def has_special_requests(self) -> bool:
        return self.booking.has_special_requests

    @property
    def has_drinks_package(self) -> bool:
        return self.booking.has_drinks_package

    def to_dict(self) -> dict:
        return {
            'valid': True,
            'credential_format': self.credential_format,
            'booking': self.booking.summary(),
            'tables': [table.to_dict() for table in self.tables],
            'has_special_requests': self.has_special_requests,
            'has_drinks_package': self.has_drinks_package,
        }


class CheckInVerifier:
    """
    Resolves a scanned payload to a booking and checks it may be admitted

    Accepted payloads:
    - modern: {"bookingId": ..., "token": <signed JWT>, ...}
    - legacy: {"ref": ..., "name": ..., "date": ..., ...}
    """

    def __init__(
        self,
        booking_repo: AbstractBookingRepository,
        table_repo: AbstractTableRepository,
        token_service: CheckInTokenService,
        clock: Callable = timezone.now,
    ):
        self.booking_repo = booking_repo
        self.table_repo = table_repo
        self.token_service = token_service
        self.clock = clock

    def verify(self, raw: Any, actor: Actor) -> VerifiedPackage:
        """
        Verify a scanned credential

        raw may be the scanned string or an already decoded dict.

        Raises:
            AuthorizationError: actor cannot check customers in
            ValidationError: unreadable payload, field mismatch, wrong day
            TokenError: signed token rejected ('expired' or 'invalid')
            NotFoundError: no booking behind the credential
            ConflictError: already checked in
            StateError: booking not confirmed
        """
        actor.require(Capability.CHECK_IN_CUSTOMERS)
        payload = self._parse(raw)

        if payload.get('token') and payload.get('bookingId'):
            credential_format = JWT_FORMAT
            booking = self._load(self._booking_id_from_token(payload))
        elif all(payload.get(key) for key in ('ref', 'name', 'date')):
            credential_format = LEGACY_FORMAT
            booking = self._resolve_legacy(payload)
            self._match_legacy_fields(payload, booking)
        else:
            raise ValidationError('Unrecognized credential format')

        today = timezone.localdate(self.clock())
        if booking.booking_date != today:
            raise ValidationError(
                'Booking is not valid for today',
                booking_date=booking.booking_date.isoformat(),
                today=today.isoformat(),
            )

        if booking.is_checked_in:
            logger.info(f"Booking {booking.booking_ref} scanned again after check-in")
            raise already_checked_in(booking)

        if booking.status != BookingStatus.CONFIRMED:
            raise StateError(f"Cannot check in booking with status: {booking.status.value}")

        tables = tuple(self.table_repo.get_many(booking.table_ids))
        logger.info(
            f"Verified {credential_format} credential for booking {booking.booking_ref} "
            f"by {actor.id}"
        )
        return VerifiedPackage(booking=booking, tables=tables, credential_format=credential_format)

    def _parse(self, raw: Any) -> dict:
        if isinstance(raw, dict):
            return raw
        if not isinstance(raw, (str, bytes)):
            raise ValidationError('Invalid QR code format')
        try:
            payload = json.loads(raw)
        except ValueError:
            raise ValidationError('Invalid QR code format')
        if not isinstance(payload, dict):
            raise ValidationError('Invalid QR code format')
        return payload

    def _booking_id_from_token(self, payload: dict) -> UUID:
        claims = self.token_service.decode(str(payload['token']))
        if str(claims.get('bookingId')) != str(payload['bookingId']):
            logger.warning("Check-in token does not match the envelope's bookingId")
            raise TokenError('Invalid QR code', reason=TokenError.INVALID)
        try:
            return UUID(str(claims['bookingId']))
        except ValueError:
            raise TokenError('Invalid QR code', reason=TokenError.INVALID)

    def _load(self, booking_id: UUID) -> Booking:
        booking = self.booking_repo.get(booking_id)
        if not booking:
            raise NotFoundError('Booking not found', booking_id=str(booking_id))
        return booking

    def _resolve_legacy(self, payload: dict) -> Booking:
        booking_date = self._parse_date(payload['date'])
        found = self.booking_repo.get_by_reference(str(payload['ref']), booking_date)
        if not found:
            raise NotFoundError('Booking not found', booking_ref=str(payload['ref']))
        # Reload by id so both credential formats see the same record
        return self._load(found.id)

    def _match_legacy_fields(self, payload: dict, booking: Booking):
        if str(payload['ref']) != booking.booking_ref:
            raise ValidationError('Booking reference mismatch', field='ref')
        if str(payload['name']).strip().casefold() != booking.customer_name.strip().casefold():
            raise ValidationError('Customer name mismatch', field='name')
        if str(payload['date']) != booking.booking_date.isoformat():
            raise ValidationError('Booking date mismatch', field='date')

    @staticmethod
    def _parse_date(value: Any) -> date:
        try:
            parsed = date.fromisoformat(str(value))
        except ValueError:
            parsed = None
        # Only the YYYY-MM-DD form that credentials are issued with
        if parsed is None or parsed.isoformat() != str(value):
            raise ValidationError('Invalid date in QR code', field='date')
        return parsed
