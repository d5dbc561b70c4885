"""Notification services for guest emails."""

from __future__ import annotations

import logging
from html import escape
from typing import TYPE_CHECKING

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.html import strip_tags  # type: ignore

if TYPE_CHECKING:  # pragma: no cover
    from apps.bookings.domain.events import BookingNotificationRequested
    from .models import EmailNotification

logger = logging.getLogger(__name__)


# ============================================================================
# QUEUEING
# ============================================================================

def queue_email_notification(event: "BookingNotificationRequested") -> "EmailNotification":
    """
    Store a notification and hand delivery to Celery.

    Replaying the same event does not queue a second email.
    """
    from .models import EmailNotification
    from .tasks import deliver_email_notification

    notification, created = EmailNotification.objects.get_or_create(
        event_id=event.event_id,
        defaults={
            "booking_id": event.booking_id,
            "notification_type": event.notification_type,
            "recipient_email": event.recipient_email,
            "subject": event.subject,
            "body_text": event.body_text,
            "template_data": event.template_data,
        },
    )
    if created:
        logger.info(
            f"Queued {event.notification_type} for {event.recipient_email} "
            f"(booking {event.booking_id})"
        )
        deliver_email_notification.delay(str(notification.id))
    return notification


# ============================================================================
# DELIVERY
# ============================================================================

def send_email_notification(
    recipient_email: str,
    subject: str,
    *,
    html_message: str | None = None,
    text_message: str = "",
) -> None:
    """
    Send one email through the configured backend.

    Raises whatever the mail backend raises; the caller records the failure.
    """
    if html_message and not text_message:
        text_message = strip_tags(html_message)

    send_mail(
        subject=subject,
        message=text_message,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient_email],
        html_message=html_message,
        fail_silently=False,
    )
    logger.info(f"Email sent successfully to {recipient_email}: {subject}")


def deliver(notification: "EmailNotification") -> bool:
    """Render and send a stored notification, recording the outcome on it."""
    from .models import EmailNotification

    if notification.status == EmailNotification.Status.SENT:
        return True

    try:
        send_email_notification(
            notification.recipient_email,
            notification.subject,
            html_message=render_notification_html(notification.notification_type, notification.template_data),
            text_message=notification.body_text,
        )
    except Exception as e:
        logger.error(
            f"Failed to send {notification.notification_type} to {notification.recipient_email}: {e}",
            exc_info=True,
        )
        notification.status = EmailNotification.Status.FAILED
        notification.error = str(e)
        notification.save(update_fields=["status", "error"])
        return False

    notification.status = EmailNotification.Status.SENT
    notification.error = ""
    notification.sent_at = timezone.now()
    notification.save(update_fields=["status", "error", "sent_at"])
    return True


# ============================================================================
# TEMPLATES
# ============================================================================

def render_notification_html(notification_type: str, data: dict) -> str:
    if notification_type == "booking_confirmation":
        return _confirmation_html(data)
    return _cancellation_html(data)


def _confirmation_html(data: dict) -> str:
    tables = ", ".join(str(number) for number in data.get("table_numbers", []))
    check_in = ""
    if data.get("check_in_url"):
        check_in = (
            f"<p>Show this link or your QR code at the door:<br>"
            f"<a href=\"{escape(data['check_in_url'])}\">{escape(data['check_in_url'])}</a></p>"
        )

    return f"""
    <html>
    <body>
        <h2>Hello, {escape(data.get('customer_name', ''))}!</h2>
        <p>Your booking at {escape(settings.VENUE_NAME)} is confirmed.</p>

        <h3>Booking details:</h3>
        <ul>
            <li><strong>Reference:</strong> {escape(data.get('booking_ref', ''))}</li>
            <li><strong>Date:</strong> {escape(data.get('booking_date', ''))}</li>
            <li><strong>Arrival:</strong> {escape(data.get('arrival_time', ''))}</li>
            {f"<li><strong>Tables:</strong> {escape(tables)}</li>" if tables else ""}
        </ul>

        {check_in}

        <p>See you soon,<br>{escape(settings.VENUE_NAME)}</p>
    </body>
    </html>
    """


def _cancellation_html(data: dict) -> str:
    if data.get("refund_eligible"):
        refund = "<p>You cancelled at least 48 hours before arrival, so your deposit will be refunded.</p>"
    else:
        refund = "<p>You cancelled less than 48 hours before arrival, so your deposit is non-refundable.</p>"

    return f"""
    <html>
    <body>
        <h2>Hello, {escape(data.get('customer_name', ''))}!</h2>
        <p>Your booking <strong>{escape(data.get('booking_ref', ''))}</strong>
        for {escape(data.get('booking_date', ''))} has been cancelled.</p>

        {refund}

        <p>Kind regards,<br>{escape(settings.VENUE_NAME)}</p>
    </body>
    </html>
    """
