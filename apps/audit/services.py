"""Audit log services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from apps.bookings.domain.events import BookingAudited
    from .models import AuditLogEntry

logger = logging.getLogger(__name__)


def record_audit_entry(event: "BookingAudited") -> "AuditLogEntry":
    """Persist an audit event. Replaying the same event is a no-op."""
    from .models import AuditLogEntry

    entry, created = AuditLogEntry.objects.get_or_create(
        event_id=event.event_id,
        defaults={
            "booking_id": event.booking_id,
            "action": event.action,
            "actor_id": event.actor_id,
            "actor_role": event.actor_role,
            "old_values": event.old_values,
            "new_values": event.new_values,
            "occurred_at": event.occurred_at,
        },
    )
    if created:
        logger.info(f"Audit: {event.action} on booking {event.booking_id} by {event.actor_id}")
    return entry
