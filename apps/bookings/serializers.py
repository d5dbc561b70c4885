"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Booking
from .domain.state_machine import EDITABLE_FIELDS, MAX_PARTY_SIZE, MAX_TABLE_ID, MIN_PARTY_SIZE, MIN_TABLE_ID

TIME_INPUT_FORMATS = ["%H:%M", "%H:%M:%S"]


class BookingSerializer(serializers.ModelSerializer):
    """Full booking record for staff views."""

    arrival_time = serializers.TimeField(format="%H:%M", read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_ref",
            "customer_name",
            "customer_email",
            "customer_phone",
            "party_size",
            "booking_date",
            "arrival_time",
            "table_ids",
            "status",
            "special_requests",
            "drinks_package",
            "deposit_amount",
            "package_amount",
            "remaining_balance",
            "checked_in_at",
            "cancelled_at",
            "refund_eligible",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingUpdateSerializer(serializers.Serializer):
    """Partial update of a booking. Only the keys sent are validated and returned."""

    status = serializers.ChoiceField(choices=Booking.Status.choices, required=False)
    customer_name = serializers.CharField(min_length=1, max_length=255, required=False)
    customer_email = serializers.EmailField(required=False)
    customer_phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    party_size = serializers.IntegerField(min_value=MIN_PARTY_SIZE, max_value=MAX_PARTY_SIZE, required=False)
    arrival_time = serializers.TimeField(input_formats=TIME_INPUT_FORMATS, required=False)
    table_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=MIN_TABLE_ID, max_value=MAX_TABLE_ID),
        required=False,
    )
    special_requests = serializers.JSONField(required=False, allow_null=True)
    drinks_package = serializers.JSONField(required=False, allow_null=True)
    package_amount = serializers.DecimalField(
        max_digits=10,
        decimal_places=2,
        min_value=0,
        required=False,
        allow_null=True,
    )

    def validate(self, attrs):  # type: ignore
        unknown = set(self.initial_data) - set(EDITABLE_FIELDS) - {"status"}
        if unknown:
            raise serializers.ValidationError(
                {name: "This field cannot be updated." for name in sorted(unknown)}
            )
        if not attrs:
            raise serializers.ValidationError("No fields to update.")
        return attrs


class QRVerifySerializer(serializers.Serializer):
    qrData = serializers.JSONField()


class CheckInSerializer(serializers.Serializer):
    bookingId = serializers.UUIDField()


class BookingSearchSerializer(serializers.Serializer):
    query = serializers.CharField(min_length=1, trim_whitespace=True)
    searchType = serializers.ChoiceField(
        choices=["booking_ref", "reference", "name", "phone", "all"],
        default="all",
    )
    date = serializers.DateField(required=False)


class TonightSerializer(serializers.Serializer):
    date = serializers.DateField(required=False)
