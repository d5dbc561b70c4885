"""
Booking Event Handlers

Subscribers that forward committed booking events to the audit log and
to guest notifications. They run after the transaction has committed;
the message bus logs their failures without propagating them.
"""

import logging

from apps.bookings.domain.events import BookingAudited, BookingNotificationRequested

logger = logging.getLogger(__name__)


def record_audit_event(event: BookingAudited):
    from apps.audit.services import record_audit_entry

    record_audit_entry(event)


def queue_notification(event: BookingNotificationRequested):
    from apps.notifications.services import queue_email_notification

    if not event.recipient_email:
        logger.warning(f"Booking {event.booking_id} has no email, skipping {event.notification_type}")
        return
    queue_email_notification(event)
