"""DRF exception handler that renders typed domain errors."""

from __future__ import annotations

import structlog
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.exceptions import DomainError

logger = structlog.get_logger(__name__)


def domain_exception_handler(exc, context):  # type: ignore
    """Map DomainError subclasses to JSON bodies, defer everything else to DRF."""

    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.warning(
            "api.domain_error",
            code=exc.code,
            status=exc.status_code,
            error=exc.message,
            view=view.__class__.__name__ if view else None,
        )
        return Response(exc.to_dict(), status=exc.status_code)
    return exception_handler(exc, context)
