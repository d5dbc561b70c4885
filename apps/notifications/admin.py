"""Admin registration for notifications."""

from __future__ import annotations

from django.contrib import admin

from .models import EmailNotification


@admin.register(EmailNotification)
class EmailNotificationAdmin(admin.ModelAdmin):
    list_display = ("notification_type", "recipient_email", "booking", "status", "sent_at", "created_at")
    list_filter = ("notification_type", "status")
    search_fields = ("recipient_email", "booking__booking_ref")
    readonly_fields = ("event_id", "template_data", "sent_at", "created_at")
