"""Admin registration for the audit log."""

from __future__ import annotations

from django.contrib import admin

from .models import AuditLogEntry


@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = ("action", "booking", "actor_id", "actor_role", "occurred_at")
    list_filter = ("action", "actor_role")
    search_fields = ("booking__booking_ref", "actor_id")
    readonly_fields = (
        "event_id",
        "booking",
        "action",
        "actor_id",
        "actor_role",
        "old_values",
        "new_values",
        "occurred_at",
        "created_at",
    )

    def has_add_permission(self, request):  # type: ignore
        return False

    def has_change_permission(self, request, obj=None):  # type: ignore
        return False
