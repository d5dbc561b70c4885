"""
Check-in Token Service

Mints the credentials a guest presents at the door.

Two shapes are produced for every confirmed booking:
- modern: a JSON envelope {bookingId, token, venue, checkInUrl} whose token
  is an HS256-signed JWT scoped to check-in by a fixed issuer and audience,
  valid for 48 hours from issuance
- legacy: the older unsigned {ref, table, time, size, name, date} structure,
  kept so codes printed before signed tokens existed still scan

Rendering either payload to a QR image is left to the caller.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable
import json
import logging

import jwt
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from shared.domain.base import ValueObject
from apps.bookings.domain.entities import Booking, BookingStatus, TableInfo
from apps.bookings.domain.exceptions import StateError, TokenError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckInCredential(ValueObject):
    """Claims carried by a signed check-in token"""
    booking_id: str
    table_numbers: tuple[int, ...]
    guest_name: str
    event_date: str
    party_size: int
    arrival_time: str
    venue_id: str
    issued_at: datetime
    expires_at: datetime

    def to_claims(self) -> dict:
        return {
            'bookingId': self.booking_id,
            'tableNumbers': list(self.table_numbers),
            'guestName': self.guest_name,
            'eventDate': self.event_date,
            'partySize': self.party_size,
            'arrivalTime': self.arrival_time,
            'venueId': self.venue_id,
            'iat': self.issued_at,
            'exp': self.expires_at,
        }


@dataclass(frozen=True)
class BookingQRData(ValueObject):
    """Modern scannable envelope"""
    booking_id: str
    token: str
    venue: str
    check_in_url: str

    def to_dict(self) -> dict:
        return {
            'bookingId': self.booking_id,
            'token': self.token,
            'venue': self.venue,
            'checkInUrl': self.check_in_url,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class LegacyCredential(ValueObject):
    """Unsigned pre-JWT payload, matched against the booking field by field"""
    ref: str
    table: int
    time: str
    size: int
    name: str
    date: str

    def to_dict(self) -> dict:
        return {
            'ref': self.ref,
            'table': self.table,
            'time': self.time,
            'size': self.size,
            'name': self.name,
            'date': self.date,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class IssuedCredentials(ValueObject):
    modern: BookingQRData
    legacy: LegacyCredential
    credential: CheckInCredential

    def to_dict(self) -> dict:
        return {
            'modern': self.modern.to_dict(),
            'legacy': self.legacy.to_dict(),
            'qr_data': self.modern.to_json(),
            'legacy_qr_data': self.legacy.to_json(),
            'expires_at': self.credential.expires_at.isoformat(),
        }


class CheckInTokenService:
    """
    Issues and decodes signed check-in tokens

    Usage:
        service = CheckInTokenService.from_settings()
        issued = service.issue(booking, tables)
        rasterize(issued.modern.to_json())

        claims = service.decode(token)  # raises TokenError
    """

    def __init__(
        self,
        signing_key: str,
        *,
        issuer: str,
        audience: str,
        venue_id: str,
        venue_name: str,
        base_url: str,
        lifetime: timedelta = timedelta(hours=48),
        algorithm: str = 'HS256',
    ):
        if not signing_key:
            raise ImproperlyConfigured("Check-in token signing key is not configured")
        self.signing_key = signing_key
        self.issuer = issuer
        self.audience = audience
        self.venue_id = venue_id
        self.venue_name = venue_name
        self.base_url = base_url.rstrip('/')
        self.lifetime = lifetime
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls) -> 'CheckInTokenService':
        config = settings.CHECKIN_TOKEN
        return cls(
            config.get('SIGNING_KEY') or settings.SECRET_KEY,
            issuer=config['ISSUER'],
            audience=config['AUDIENCE'],
            venue_id=settings.VENUE_ID,
            venue_name=settings.VENUE_NAME,
            base_url=config['BASE_URL'],
            lifetime=config.get('LIFETIME', timedelta(hours=48)),
            algorithm=config.get('ALGORITHM', 'HS256'),
        )

    def issue(
        self,
        booking: Booking,
        tables: Iterable[TableInfo] = (),
        *,
        now: datetime | None = None,
    ) -> IssuedCredentials:
        """
        Mint the modern and legacy credentials for a confirmed booking

        Raises:
            StateError: booking is not confirmed or lacks the fields a
                credential must carry
        """
        self._ensure_issuable(booking)
        issued_at = now or timezone.now()
        table_numbers = tuple(table.table_number for table in tables)

        credential = CheckInCredential(
            booking_id=str(booking.id),
            table_numbers=table_numbers,
            guest_name=booking.customer_name,
            event_date=booking.booking_date.isoformat(),
            party_size=booking.party_size,
            arrival_time=booking.arrival_time.strftime('%H:%M'),
            venue_id=self.venue_id,
            issued_at=issued_at,
            expires_at=issued_at + self.lifetime,
        )
        token = jwt.encode(
            {**credential.to_claims(), 'iss': self.issuer, 'aud': self.audience},
            self.signing_key,
            algorithm=self.algorithm,
        )
        modern = BookingQRData(
            booking_id=str(booking.id),
            token=token,
            venue=self.venue_name,
            check_in_url=f"{self.base_url}/check-in/{token}",
        )
        legacy = LegacyCredential(
            ref=booking.booking_ref,
            table=table_numbers[0] if table_numbers else 0,
            time=credential.arrival_time,
            size=booking.party_size,
            name=booking.customer_name,
            date=credential.event_date,
        )

        logger.info(
            f"Issued check-in credentials for booking {booking.booking_ref}, "
            f"valid until {credential.expires_at.isoformat()}"
        )
        return IssuedCredentials(modern=modern, legacy=legacy, credential=credential)

    def decode(self, token: str) -> dict:
        """
        Verify signature, issuer, audience and expiry, and return the claims

        Raises:
            TokenError: reason 'expired' when the token is past its expiry,
                'invalid' for every other failure
        """
        try:
            return jwt.decode(
                token,
                self.signing_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={'require': ['exp', 'iat', 'iss', 'aud']},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Rejected expired check-in token")
            raise TokenError('QR code has expired', reason=TokenError.EXPIRED)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Rejected invalid check-in token: {e}")
            raise TokenError('Invalid QR code', reason=TokenError.INVALID)

    def _ensure_issuable(self, booking: Booking):
        if booking.status != BookingStatus.CONFIRMED:
            raise StateError(
                f"Cannot issue check-in credentials for booking with status: {booking.status.value}"
            )
        if not (booking.booking_ref and booking.customer_name and booking.party_size > 0
                and booking.arrival_time and booking.booking_date):
            raise StateError("Booking is missing details required for a check-in credential")
