"""
core.domain.exception_handler — DRF-compatible global exception handler.

Maps domain exceptions from ``core.domain.exceptions`` to proper
DRF ``Response`` objects so that views don't need per-endpoint
try/except boilerplate.  Database failures surface as a generic
``service_error`` instead of leaking driver messages.

Register in ``settings.py``::

    REST_FRAMEWORK = {
        ...
        'EXCEPTION_HANDLER': 'core.domain.exception_handler.domain_exception_handler',
    }
"""

from __future__ import annotations

import logging

from django.db import DatabaseError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_default_handler

from core.domain.exceptions import (
    CityMismatch,
    Conflict,
    DomainError,
    InvalidPhysiotherapist,
    NotFound,
    PermissionDenied,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Domain exception → HTTP status code
_STATUS_MAP: dict[type, int] = {
    ValidationError:        400,
    InvalidPhysiotherapist: 400,
    CityMismatch:           400,
    PermissionDenied:       403,
    NotFound:               404,
    Conflict:               409,  # AlreadyAssigned, InvalidTransition
    DomainError:            400,  # catch-all base class last
}

SERVICE_ERROR_MESSAGE = "The service is temporarily unavailable. Please retry later."


def domain_exception_handler(exc: Exception, context: dict) -> Response | None:
    """
    DRF exception handler that also handles ``core.domain.exceptions``.

    The default DRF handler is called first.  If it returns ``None``
    (meaning DRF doesn't recognise the exception), we check whether
    it's one of our domain exceptions and return an appropriate response.
    """
    # Let DRF handle its own exceptions (ValidationError, AuthN, etc.)
    response = drf_default_handler(exc, context)
    if response is not None:
        return response

    for exc_class, status_code in _STATUS_MAP.items():
        if isinstance(exc, exc_class):
            logger.warning(
                "Domain exception [%s] in %s: %s",
                type(exc).__name__,
                context.get("view", "unknown"),
                exc,
            )
            return Response(
                {"detail": str(exc), "code": exc.code},
                status=status_code,
            )

    if isinstance(exc, DatabaseError):
        logger.error(
            "Database failure in %s",
            context.get("view", "unknown"),
            exc_info=exc,
        )
        return Response(
            {"detail": SERVICE_ERROR_MESSAGE, "code": "service_error"},
            status=503,
        )

    # Not a domain or database error; let DRF propagate it
    return None
