"""Admin registration for venue tables."""

from __future__ import annotations

from django.contrib import admin

from .models import VenueTable


@admin.register(VenueTable)
class VenueTableAdmin(admin.ModelAdmin):
    list_display = ("table_number", "floor", "capacity_min", "capacity_max", "is_active")
    list_filter = ("floor", "is_active")
    search_fields = ("description",)
