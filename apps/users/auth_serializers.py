"""Serializers for staff login."""

from __future__ import annotations

from typing import Any

from django.contrib.auth import get_user_model  # type: ignore
from rest_framework import serializers  # type: ignore

User = get_user_model()


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:  # type: ignore
        email = attrs.get("email", "")
        password = attrs.get("password", "")

        try:
            user = User.objects.get(email__iexact=email)
        except User.DoesNotExist:
            raise serializers.ValidationError({"email": "Invalid email or password."})

        if user.is_locked:
            raise serializers.ValidationError({"non_field_errors": ["Account temporarily locked. Try again later."]})

        if not user.check_password(password):
            user.register_failed_attempt(threshold=5)
            raise serializers.ValidationError({"email": "Invalid email or password."})

        if not user.is_active:
            raise serializers.ValidationError({"email": "Account is disabled."})

        user.unlock()
        attrs["user"] = user
        return attrs
