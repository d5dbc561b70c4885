"""API views for the booking domain."""

from __future__ import annotations

import structlog
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from apps.bookings.domain.entities import Capability
from apps.users.actors import actor_for_user
from apps.users.permissions import HasCapability

from . import services
from .application.search import SearchScope
from .models import Booking
from .serializers import (
    BookingSearchSerializer,
    BookingSerializer,
    BookingUpdateSerializer,
    CheckInSerializer,
    QRVerifySerializer,
    TonightSerializer,
)

logger = structlog.get_logger(__name__)


def _serialized(booking_id) -> dict:  # type: ignore
    return BookingSerializer(Booking.objects.get(pk=booking_id)).data


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Staff management of bookings. Every change goes through the state machine."""

    queryset = Booking.objects.all().order_by("booking_date", "arrival_time")
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated, HasCapability]
    filter_backends = [DjangoFilterBackend]
    filterset_fields = ["booking_date", "status"]
    # partial_update is authorised by the update handler: a cancel-only
    # patch needs cancel_bookings, anything else modify_bookings
    capability_map = {
        "list": Capability.VIEW_BOOKINGS,
        "retrieve": Capability.VIEW_BOOKINGS,
        "partial_update": None,
        "destroy": Capability.CANCEL_BOOKINGS,
        "credentials": Capability.VIEW_BOOKINGS,
        "check_in": Capability.CHECK_IN_CUSTOMERS,
    }

    def partial_update(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        serializer = BookingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        actor = actor_for_user(request.user)
        result = services.update_booking(booking.pk, dict(serializer.validated_data), actor)
        logger.info(
            "bookings.updated",
            booking_ref=booking.booking_ref,
            actor_id=actor.id,
            changes=list(result.changed_fields),
        )
        return Response(
            {
                "message": "Booking updated successfully",
                "booking": _serialized(booking.pk),
                "changes_applied": list(result.changed_fields),
                "updated_by": actor.email or actor.id,
            },
            status=status.HTTP_200_OK,
        )

    def destroy(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        actor = actor_for_user(request.user)
        result = services.cancel_booking(booking.pk, actor)
        logger.info("bookings.cancelled", booking_ref=booking.booking_ref, actor_id=actor.id)
        return Response(
            {
                "message": "Booking cancelled successfully",
                "booking": _serialized(booking.pk),
                "refund_eligible": result.booking.refund_eligible,
            },
            status=status.HTTP_200_OK,
        )

    @action(detail=True, methods=["get"])
    def credentials(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        issued = services.issue_credentials(booking.pk, actor_for_user(request.user))
        return Response(issued.to_dict(), status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="check-in")
    def check_in(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        return _check_in_response(request, booking.pk)


def _check_in_response(request, booking_id) -> Response:  # type: ignore
    actor = actor_for_user(request.user)
    booking = services.commit_check_in(booking_id, actor)
    logger.info("door.checked_in", booking_ref=booking.booking_ref, actor_id=actor.id)
    return Response(
        {
            "success": True,
            "message": "Customer checked in successfully",
            "booking": booking.summary(),
            "checked_in_at": booking.checked_in_at.isoformat(),
        },
        status=status.HTTP_200_OK,
    )


class QRVerifyView(APIView):
    """Verify a scanned check-in credential without changing the booking."""

    permission_classes = [permissions.IsAuthenticated, HasCapability]
    required_capability = Capability.CHECK_IN_CUSTOMERS

    def post(self, request):  # type: ignore
        serializer = QRVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        package = services.verify_check_in(serializer.validated_data["qrData"], actor_for_user(request.user))
        logger.info(
            "door.qr_verified",
            booking_ref=package.booking.booking_ref,
            credential_format=package.credential_format,
        )
        return Response(package.to_dict(), status=status.HTTP_200_OK)


class DoorCheckInView(APIView):
    """Commit a verified guest's arrival."""

    permission_classes = [permissions.IsAuthenticated, HasCapability]
    required_capability = Capability.CHECK_IN_CUSTOMERS

    def post(self, request):  # type: ignore
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return _check_in_response(request, serializer.validated_data["bookingId"])


class BookingSearchView(APIView):
    """Find tonight's bookings by reference, name or phone."""

    permission_classes = [permissions.IsAuthenticated, HasCapability]
    required_capability = Capability.VIEW_BOOKINGS

    def get(self, request):  # type: ignore
        serializer = BookingSearchSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        results = services.search_bookings(
            params["query"],
            SearchScope.parse(params["searchType"]),
            params.get("date"),
            actor_for_user(request.user),
        )
        return Response(
            {
                "results": [result.to_dict() for result in results],
                "count": len(results),
            },
            status=status.HTTP_200_OK,
        )


class TonightBookingsView(APIView):
    """Tonight's expected bookings with arrival counts for the door."""

    permission_classes = [permissions.IsAuthenticated, HasCapability]
    required_capability = Capability.VIEW_BOOKINGS

    def get(self, request):  # type: ignore
        serializer = TonightSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        summary = services.tonight_bookings(serializer.validated_data.get("date"), actor_for_user(request.user))
        return Response(summary.to_dict(), status=status.HTTP_200_OK)
