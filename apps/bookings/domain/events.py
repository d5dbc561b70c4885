"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
They are published after successful transaction commits and handled
fire-and-forget: a failing handler never undoes the booking change.
"""

from dataclasses import dataclass, field
from uuid import UUID

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class BookingAudited(DomainEvent):
    """
    Event: A booking was changed by a staff member

    Triggers:
    - Append an entry to the audit log
    """
    booking_id: UUID
    action: str
    actor_id: str
    actor_role: str
    old_values: dict = field(default_factory=dict)
    new_values: dict = field(default_factory=dict)


@dataclass(kw_only=True)
class BookingNotificationRequested(DomainEvent):
    """
    Event: The guest must be told about a status change

    Raised when a booking moves to CONFIRMED or CANCELLED.

    Triggers:
    - Queue an email to the guest
    """
    booking_id: UUID
    notification_type: str
    recipient_email: str
    subject: str
    body_text: str = ''
    template_data: dict = field(default_factory=dict)
