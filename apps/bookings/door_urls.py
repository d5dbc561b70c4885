"""URL routing for door-staff endpoints (namespace: door)."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import BookingSearchView, DoorCheckInView, QRVerifyView, TonightBookingsView

app_name = "door"

urlpatterns = [
    path("qr-verify/", QRVerifyView.as_view(), name="qr-verify"),
    path("check-in/", DoorCheckInView.as_view(), name="check-in"),
    path("search/", BookingSearchView.as_view(), name="search"),
    path("tonight/", TonightBookingsView.as_view(), name="tonight"),
]
