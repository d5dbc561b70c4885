"""Venue table inventory."""

from __future__ import annotations

from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class VenueTable(models.Model):
    """A physical table that can be reserved."""

    class Floor(models.TextChoices):
        UPSTAIRS = "upstairs", _("Upstairs")
        DOWNSTAIRS = "downstairs", _("Downstairs")

    table_number = models.PositiveSmallIntegerField(unique=True)
    floor = models.CharField(max_length=16, choices=Floor.choices)
    capacity_min = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    capacity_max = models.PositiveSmallIntegerField(validators=[MinValueValidator(1)])
    description = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = _("Table")
        verbose_name_plural = _("Tables")
        ordering = ["table_number"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(capacity_max__gte=models.F("capacity_min")),
                name="venue_table_capacity_range",
            ),
        ]

    def __str__(self) -> str:
        return f"Table {self.table_number} ({self.get_floor_display()})"
