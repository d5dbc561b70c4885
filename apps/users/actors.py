"""Translate authenticated users into domain actors."""

from __future__ import annotations

from apps.bookings.domain.entities import Actor, Role


def actor_for_user(user) -> Actor:  # type: ignore
    """Build the Actor passed to booking operations from a staff user."""
    if getattr(user, "is_superuser", False):
        role = Role.SUPER_ADMIN
    else:
        role = Role(user.role)
    return Actor(id=str(user.pk), role=role, email=user.email)
