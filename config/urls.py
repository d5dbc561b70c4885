"""URL configuration for the Backroom bookings project.

The `urlpatterns` list routes URLs to views. It includes the Django admin,
the staff authentication endpoints and the booking and door-staff APIs.
"""
from django.contrib import admin  # type: ignore
from django.urls import path, include  # type: ignore
from drf_spectacular.views import SpectacularAPIView  # type: ignore

from shared.api.views import healthz

# API versioning. v1 is our initial version; future versions can be added here.

urlpatterns = [
    path('admin/', admin.site.urls),
    path('healthz/', healthz, name='healthz'),
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    # Application URLs
    path('api/v1/auth/', include(('apps.users.auth_urls', 'auth'), namespace='auth')),
    path('api/v1/bookings/', include('apps.bookings.urls')),
    path('api/v1/door-staff/', include(('apps.bookings.door_urls', 'door'), namespace='door')),
]
