"""
Booking Domain Entities

Core business entities for the reservation domain:
- Booking: a reservation of one or more venue tables for an evening
- BookingStatus: FSM states for the booking lifecycle
- TableInfo: read-only table reference data
- Actor: the staff member performing an operation
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from decimal import Decimal
from enum import Enum
from typing import Any

from django.utils import timezone

from shared.domain.base import Entity, ValueObject


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (deposit received or staff confirmed)
    - PENDING -> CANCELLED
    - CONFIRMED -> ARRIVED (guest checked in at the door)
    - CONFIRMED -> CANCELLED
    - CONFIRMED -> NO_SHOW (guest never arrived)
    - CANCELLED -> CONFIRMED (re-confirmation)
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'
    ARRIVED = 'arrived'
    NO_SHOW = 'no_show'

    @property
    def is_active(self) -> bool:
        """Active bookings hold their tables"""
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({
    BookingStatus.PENDING,
    BookingStatus.CONFIRMED,
    BookingStatus.ARRIVED,
})


class Role(Enum):
    SUPER_ADMIN = 'super_admin'
    MANAGER = 'manager'
    DOOR_STAFF = 'door_staff'


class Capability(Enum):
    VIEW_BOOKINGS = 'view_bookings'
    MODIFY_BOOKINGS = 'modify_bookings'
    CANCEL_BOOKINGS = 'cancel_bookings'
    CHECK_IN_CUSTOMERS = 'check_in_customers'


ROLE_CAPABILITIES = {
    Role.SUPER_ADMIN: frozenset(Capability),
    Role.MANAGER: frozenset({
        Capability.VIEW_BOOKINGS,
        Capability.MODIFY_BOOKINGS,
        Capability.CANCEL_BOOKINGS,
        Capability.CHECK_IN_CUSTOMERS,
    }),
    Role.DOOR_STAFF: frozenset({
        Capability.VIEW_BOOKINGS,
        Capability.CHECK_IN_CUSTOMERS,
    }),
}


@dataclass(frozen=True)
class Actor(ValueObject):
    """Authenticated staff member, passed explicitly into every operation"""
    id: str
    role: Role
    email: str = ''

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())

    def require(self, capability: Capability):
        """Raise AuthorizationError unless the actor holds the capability"""
        if not self.can(capability):
            from apps.bookings.domain.exceptions import AuthorizationError

            raise AuthorizationError(
                f"Role {self.role.value} lacks the {capability.value} capability",
                required_capability=capability.value,
            )


@dataclass(frozen=True)
class TableInfo(ValueObject):
    """A physical table in the venue"""
    id: int
    table_number: int
    floor: str
    capacity_min: int
    capacity_max: int

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'table_number': self.table_number,
            'floor': self.floor,
            'capacity_min': self.capacity_min,
            'capacity_max': self.capacity_max,
        }


@dataclass(kw_only=True, eq=False)
class Booking(Entity):
    """
    Booking Entity

    Represents a party's reservation of one or more tables on a given night.
    Instances are treated as immutable snapshots: the state machine produces
    a new Booking for every change instead of mutating this one.

    Key invariants:
    - table_ids is non-empty while the booking is pending, confirmed or arrived
    - checked_in_at is set if and only if status is ARRIVED
    - cancelled_at is set while a cancellation is in effect
    """

    booking_ref: str
    customer_name: str
    customer_email: str
    customer_phone: str = ''
    party_size: int
    booking_date: date
    arrival_time: time
    table_ids: tuple[int, ...] = ()
    status: BookingStatus = BookingStatus.PENDING

    special_requests: Any = None
    drinks_package: Any = None

    deposit_amount: Decimal = Decimal('50.00')
    package_amount: Decimal | None = None
    remaining_balance: Decimal | None = None

    checked_in_at: datetime | None = None
    cancelled_at: datetime | None = None
    refund_eligible: bool = True

    # Optimistic concurrency token, bumped by the store on every write
    version: int = field(default=1)

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_checked_in(self) -> bool:
        return self.status == BookingStatus.ARRIVED or self.checked_in_at is not None

    @property
    def has_special_requests(self) -> bool:
        return bool(self.special_requests)

    @property
    def has_drinks_package(self) -> bool:
        return bool(self.drinks_package)

    def arrival_at(self, tz: tzinfo | None = None) -> datetime:
        """Arrival as an aware datetime in venue-local time"""
        naive = datetime.combine(self.booking_date, self.arrival_time)
        return timezone.make_aware(naive, tz or timezone.get_current_timezone())

    def snapshot(self) -> dict:
        """Fields recorded in audit entries"""
        return {
            'status': self.status.value,
            'customer_name': self.customer_name,
            'customer_email': self.customer_email,
            'party_size': self.party_size,
            'table_ids': list(self.table_ids),
        }

    def summary(self) -> dict:
        return {
            'id': str(self.id),
            'booking_ref': self.booking_ref,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_email': self.customer_email,
            'party_size': self.party_size,
            'booking_date': self.booking_date.isoformat(),
            'arrival_time': self.arrival_time.strftime('%H:%M'),
            'table_ids': list(self.table_ids),
            'status': self.status.value,
            'checked_in_at': self.checked_in_at.isoformat() if self.checked_in_at else None,
            'special_requests': self.special_requests,
            'drinks_package': self.drinks_package,
        }

    def __str__(self):
        return f"Booking {self.booking_ref} ({self.status.value})"

    def __repr__(self):
        return (
            f"Booking(id={self.id}, booking_ref={self.booking_ref}, "
            f"status={self.status.value}, date={self.booking_date}, tables={self.table_ids})"
        )
