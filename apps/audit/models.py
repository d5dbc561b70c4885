"""Audit log model."""

from __future__ import annotations

import uuid

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class AuditLogEntry(models.Model):
    """One staff action against a booking, with before and after snapshots."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_id = models.UUIDField(unique=True)
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="audit_entries",
    )
    action = models.CharField(max_length=64)
    actor_id = models.CharField(max_length=64)
    actor_role = models.CharField(max_length=32)
    old_values = models.JSONField(default=dict)
    new_values = models.JSONField(default=dict)
    occurred_at = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Audit log entry")
        verbose_name_plural = _("Audit log entries")
        ordering = ["-occurred_at"]
        indexes = [
            models.Index(fields=["booking", "occurred_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.action} on {self.booking_id} by {self.actor_id}"
