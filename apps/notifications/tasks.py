"""Celery tasks for guest notifications."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .models import EmailNotification
from .services import deliver

logger = logging.getLogger(__name__)


@shared_task(name="notifications.deliver_email_notification")
def deliver_email_notification(notification_id: str) -> bool:
    """Deliver a queued email. Returns False when it could not be sent."""

    try:
        notification = EmailNotification.objects.get(pk=notification_id)
    except EmailNotification.DoesNotExist:
        logger.warning(f"Email notification {notification_id} no longer exists")
        return False

    return deliver(notification)
