"""Permission classes for staff API endpoints."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore

from apps.bookings.domain.entities import Capability
from .actors import actor_for_user


class HasCapability(permissions.BasePermission):
    """
    Allow access when the staff user's role grants the view's capability.

    Views declare ``required_capability`` (a Capability) or
    ``capability_map`` keyed by action / HTTP method name.
    """

    message = "Insufficient permissions"

    def has_permission(self, request, view) -> bool:  # type: ignore
        user = request.user
        if not user or not user.is_authenticated or not user.is_active:
            return False

        capability = self._capability_for(request, view)
        if capability is None:
            return True
        return actor_for_user(user).can(capability)

    @staticmethod
    def _capability_for(request, view) -> Capability | None:  # type: ignore
        capability_map = getattr(view, "capability_map", None) or {}
        action = getattr(view, "action", None)
        if action and action in capability_map:
            return capability_map[action]
        method = request.method.lower()
        if method in capability_map:
            return capability_map[method]
        return getattr(view, "required_capability", None)
