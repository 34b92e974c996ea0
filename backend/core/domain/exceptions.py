"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  ``core.domain.exception_handler`` maps them to HTTP
responses of the form ``{"detail": <message>, "code": <kind>}``.

Mapping cheatsheet
------------------
┌────────────────────────┬──────────────────────────┬──────┐
│ Domain Exception       │ code                     │ HTTP │
├────────────────────────┼──────────────────────────┼──────┤
│ DomainError            │ domain_error             │ 400  │
│ ValidationError        │ validation_error         │ 400  │
│ InvalidPhysiotherapist │ invalid_physiotherapist  │ 400  │
│ CityMismatch           │ city_mismatch            │ 400  │
│ PermissionDenied       │ permission_denied        │ 403  │
│ NotFound               │ not_found                │ 404  │
│ Conflict               │ conflict                 │ 409  │
│ AlreadyAssigned        │ already_assigned         │ 409  │
│ InvalidTransition      │ invalid_state_transition │ 409  │
└────────────────────────┴──────────────────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import InvalidTransition

    if case.status != CaseStatus.PENDING_CLOSURE:
        raise InvalidTransition(
            current=case.status,
            target=CaseStatus.CLOSED,
            reason="Case closure has not been requested.",
        )
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    code = "domain_error"

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """
    Input rejected by a business rule: missing issue details, a blank
    comment, a review rating outside 1-5 and so on.

    Maps to HTTP 400.
    """

    code = "validation_error"

    def __init__(self, message: str = "The submitted data is invalid.") -> None:
        super().__init__(message)


class InvalidPhysiotherapist(DomainError):
    """
    The referenced user does not exist or is not a physiotherapist.

    Maps to HTTP 400.
    """

    code = "invalid_physiotherapist"

    def __init__(self, message: str = "Invalid physiotherapist.") -> None:
        super().__init__(message)


class CityMismatch(DomainError):
    """
    The chosen physiotherapist does not cover the case's city.

    Maps to HTTP 400.
    """

    code = "city_mismatch"

    def __init__(
        self,
        message: str | None = None,
        *,
        city: str | None = None,
        available: list[str] | None = None,
    ) -> None:
        if message is None:
            message = f"Physiotherapist does not serve {city}."
            if available is not None:
                message += f" Available cities: {', '.join(available) or 'none'}"
        super().__init__(message)
        self.city = city
        self.available = list(available or [])


class PermissionDenied(DomainError):
    """
    The authenticated user does not have the required role for this
    operation, or is not a participant of the case.

    Maps to HTTP 403.
    """

    code = "permission_denied"

    def __init__(self, message: str = "You do not have permission to perform this action.") -> None:
        super().__init__(message)


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their role scope).

    Maps to HTTP 404.
    """

    code = "not_found"

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class Conflict(DomainError):
    """
    The operation conflicts with the current state of the resource.

    Typical usage: duplicate email on registration.
    Maps to HTTP 409.
    """

    code = "conflict"

    def __init__(self, message: str = "The operation conflicts with the current state.") -> None:
        super().__init__(message)


class AlreadyAssigned(Conflict):
    """
    The case already has a physiotherapist.  Assignments are never
    overwritten.

    Maps to HTTP 409.
    """

    code = "already_assigned"

    def __init__(self, message: str = "Case is already assigned to a physiotherapist.") -> None:
        super().__init__(message)


class InvalidTransition(Conflict):
    """
    A state-machine transition that is not allowed from the current status.

    Inherits from ``Conflict`` because an invalid transition IS a conflict
    with the resource's current state.  Maps to HTTP 409.

    Example::

        raise InvalidTransition(
            current="closed",
            target="pending_closure",
            reason="Closure can only be requested for active cases.",
        )
    """

    code = "invalid_state_transition"

    def __init__(
        self,
        message: str | None = None,
        *,
        current: str | None = None,
        target: str | None = None,
        reason: str | None = None,
    ) -> None:
        if message is None:
            parts = ["Invalid state transition"]
            if current and target:
                parts.append(f"from '{current}' to '{target}'")
            message = " ".join(parts) + "."
            if reason:
                message += f" {reason}"
        super().__init__(message)
        self.current = current
        self.target = target
        self.reason = reason
