"""
core.domain.access — Role guards and role-scoped queryset selectors.

Authorization always derives from the authenticated ``User.role``; a role
string supplied by the client is never trusted.

Architecture overview
---------------------
Role-based data access follows a **scope-rule** pattern:

    ┌─────────┐      ┌────────────────┐      ┌──────────────────┐
    │  View   │─────▶│  App service   │─────▶│ core.domain      │
    │ (thin)  │      │ (owns logic)   │      │   .access        │
    └─────────┘      └────────────────┘      │ (shared helpers) │
                                             └──────────────────┘

Usage in an app's service layer::

    from core.domain.access import apply_role_scope, require_role

    CASE_SCOPE_RULES = {
        UserRole.ADMIN:           lambda qs, u: qs,
        UserRole.PHYSIOTHERAPIST: lambda qs, u: qs.filter(physiotherapist=u),
        UserRole.PATIENT:         lambda qs, u: qs.filter(patient=u),
    }

    qs = apply_role_scope(Case.objects.all(), user, scope_rules=CASE_SCOPE_RULES)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from django.db.models import QuerySet

from accounts.models import UserRole
from core.domain.exceptions import PermissionDenied

if TYPE_CHECKING:
    from accounts.models import User

# Takes (queryset, user) and returns a filtered queryset.
ScopeFilter = Callable[[QuerySet, "User"], QuerySet]

# Role value → filter function.
ScopeRules = dict[str, ScopeFilter]


def get_user_role(user: User) -> str | None:
    """
    Return the effective role value for a user.

    Superusers are treated as admins regardless of their stored role so
    that accounts created with ``createsuperuser`` can operate the API.
    """
    if not getattr(user, "is_authenticated", False):
        return None
    if user.is_superuser:
        return UserRole.ADMIN
    return getattr(user, "role", None) or None


def is_admin(user: User) -> bool:
    return get_user_role(user) == UserRole.ADMIN


def apply_role_scope(
    queryset: QuerySet,
    user: User,
    *,
    scope_rules: ScopeRules,
) -> QuerySet:
    """
    Filter ``queryset`` with the rule registered for the user's role.

    Users whose role has no rule get an empty queryset.
    """
    role = get_user_role(user)
    filter_fn = scope_rules.get(role)
    if filter_fn is None:
        return queryset.none()
    return filter_fn(queryset, user)


def require_role(user: User, *allowed_roles: str, message: str = "") -> None:
    """
    Guard that raises ``PermissionDenied`` if the user's role is not
    among ``allowed_roles``.

    Example::

        require_role(user, UserRole.ADMIN, message="Only admins can auto-assign.")
    """
    role = get_user_role(user)
    if role not in allowed_roles:
        raise PermissionDenied(
            message
            or f"Role '{role}' is not permitted for this operation. "
               f"Required: {', '.join(str(r) for r in allowed_roles)}."
        )
