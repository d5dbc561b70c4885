"""Booking models for venue table reservations."""

from __future__ import annotations

import secrets
import uuid
from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import IntegrityError, models, transaction  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

BOOKING_REF_PREFIX = "BRL"


class Booking(models.Model):
    """A party's reservation of one or more tables for a night."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        ARRIVED = "arrived", _("Arrived")
        NO_SHOW = "no_show", _("No show")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking_ref = models.CharField(max_length=20, unique=True, editable=False)
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField()
    customer_phone = models.CharField(max_length=32, blank=True)
    party_size = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(20)],
    )
    booking_date = models.DateField()
    arrival_time = models.TimeField()
    table_ids = models.JSONField(
        default=list,
        blank=True,
        help_text=_("Ids of the venue tables held by this booking."),
    )
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    special_requests = models.JSONField(null=True, blank=True)
    drinks_package = models.JSONField(null=True, blank=True)
    deposit_amount = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("50.00"))
    package_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    remaining_balance = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refund_eligible = models.BooleanField(default=True)
    version = models.PositiveIntegerField(
        default=1,
        help_text=_("Incremented on every write; guards concurrent updates."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["booking_date", "arrival_time"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(party_size__gte=1) & models.Q(party_size__lte=20),
                name="booking_party_size_range",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status="arrived", checked_in_at__isnull=False)
                    | (~models.Q(status="arrived") & models.Q(checked_in_at__isnull=True))
                ),
                name="booking_checked_in_iff_arrived",
            ),
        ]
        indexes = [
            models.Index(fields=["booking_date", "status"]),
            models.Index(fields=["booking_ref"]),
        ]

    def __str__(self) -> str:
        return f"Booking {self.booking_ref} on {self.booking_date}"

    def save(self, *args, **kwargs):  # type: ignore
        if self._state.adding and not self.booking_ref:
            self._save_with_generated_ref(*args, **kwargs)
            return
        super().save(*args, **kwargs)

    def _save_with_generated_ref(self, *args, attempts: int = 5, **kwargs) -> None:
        for attempt in range(attempts):
            self.booking_ref = self.generate_booking_ref()
            try:
                with transaction.atomic():
                    super().save(*args, **kwargs)
                return
            except IntegrityError:
                if attempt == attempts - 1 or not type(self).objects.filter(booking_ref=self.booking_ref).exists():
                    raise

    @staticmethod
    def generate_booking_ref(year: int | None = None) -> str:
        year = year or timezone.localdate().year
        return f"{BOOKING_REF_PREFIX}-{year}-{secrets.token_hex(3)[:5].upper()}"
