"""
Booking Domain Errors

Every failure the booking core can report, with the HTTP status it maps to.
"""

from shared.domain.exceptions import DomainError


class BookingError(DomainError):
    """Base class for reservation errors"""
    code = 'booking_error'


class ValidationError(BookingError):
    """Malformed input or a disallowed target state"""
    status_code = 400
    code = 'validation_error'


class NotFoundError(BookingError):
    """Booking or table absent"""
    status_code = 404
    code = 'not_found'


class ConflictError(BookingError):
    """Table double-booked, booking already checked in, or a lost concurrent write"""
    status_code = 409
    code = 'conflict'


class AuthorizationError(BookingError):
    """Actor lacks the required capability"""
    status_code = 403
    code = 'forbidden'


class TokenError(BookingError):
    """Check-in token failed signature, issuer, audience or expiry checks"""
    status_code = 400
    code = 'token_error'

    EXPIRED = 'expired'
    INVALID = 'invalid'

    def __init__(self, message: str, reason: str = INVALID, **details):
        super().__init__(message, reason=reason, **details)
        self.reason = reason


class StateError(BookingError):
    """Action not permitted in the booking's current status"""
    status_code = 400
    code = 'invalid_state'


def already_checked_in(booking) -> ConflictError:
    """Build the 409 returned when a booking has already been checked in"""
    checked_in_at = booking.checked_in_at.isoformat() if booking.checked_in_at else None
    return ConflictError(
        'Customer already checked in',
        checked_in_at=checked_in_at,
        booking={
            'booking_ref': booking.booking_ref,
            'customer_name': booking.customer_name,
            'party_size': booking.party_size,
            'status': booking.status.value,
        },
    )
