"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "booking_ref",
        "customer_name",
        "booking_date",
        "arrival_time",
        "party_size",
        "status",
        "checked_in_at",
        "created_at",
    )
    list_filter = ("status", "booking_date", "refund_eligible")
    search_fields = ("booking_ref", "customer_name", "customer_email", "customer_phone")
    # Bookings change only through the API so every write passes the state machine
    readonly_fields = tuple(field.name for field in Booking._meta.fields)

    def has_add_permission(self, request):  # type: ignore
        return False

    def has_change_permission(self, request, obj=None):  # type: ignore
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
