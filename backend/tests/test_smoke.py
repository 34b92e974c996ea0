"""
Smoke tests — verify that Django boots, URL routing resolves, and
the core domain modules are importable.

These tests do NOT require real data; they just prove the plumbing
works.
"""

from __future__ import annotations

import pytest
from django.urls import resolve, reverse


# ════════════════════════════════════════════════════════════════════
#  URL Routing Smoke Tests
# ════════════════════════════════════════════════════════════════════

class TestURLRouting:
    """Ensure all top-level app URL namespaces resolve without 404."""

    EXPECTED_URLS = [
        # (url_name, expected_path)
        ("accounts:register",      "/api/accounts/auth/register/"),
        ("accounts:login",         "/api/accounts/auth/login/"),
        ("accounts:me",            "/api/accounts/me/"),
        ("accounts:user-list",     "/api/accounts/users/"),
        ("case-list",              "/api/cases/"),
        ("case-unmapped",          "/api/cases/unmapped/"),
        ("core:dashboard-stats",   "/api/core/dashboard/"),
        ("core:system-constants",  "/api/core/constants/"),
        ("schema",                 "/api/schema/"),
    ]

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_reverses(self, url_name: str, expected_path: str):
        """Named URL reverses to the expected path."""
        url = reverse(url_name)
        assert url == expected_path, (
            f"{url_name} resolved to {url}, expected {expected_path}"
        )

    @pytest.mark.parametrize("url_name,expected_path", EXPECTED_URLS)
    def test_url_resolve_matches_view(self, url_name: str, expected_path: str):
        """Path resolves to a view function (not a 404)."""
        match = resolve(expected_path)
        assert match.func is not None

    @pytest.mark.parametrize(
        "url_name",
        [
            "case-detail",
            "case-assign",
            "case-auto-assign",
            "case-request-closure",
            "case-close",
            "case-comments",
            "case-status-log",
        ],
    )
    def test_case_detail_routes(self, url_name: str):
        url = reverse(url_name, kwargs={"pk": 7})
        assert url.startswith("/api/cases/7/")


# ════════════════════════════════════════════════════════════════════
#  Core Domain Module Import Tests
# ════════════════════════════════════════════════════════════════════

class TestCoreDomainImports:
    """Verify that shared domain utility modules are importable."""

    def test_import_exceptions(self):
        from core.domain.exceptions import (
            AlreadyAssigned,
            CityMismatch,
            Conflict,
            DomainError,
            InvalidPhysiotherapist,
            InvalidTransition,
            NotFound,
            PermissionDenied,
        )
        # Ensure they form an inheritance chain
        assert issubclass(InvalidTransition, Conflict)
        assert issubclass(AlreadyAssigned, Conflict)
        assert issubclass(Conflict, DomainError)
        assert issubclass(PermissionDenied, DomainError)
        assert issubclass(NotFound, DomainError)
        assert issubclass(CityMismatch, DomainError)
        assert issubclass(InvalidPhysiotherapist, DomainError)

    def test_import_transactions(self):
        from core.domain.transactions import (
            atomic_transition,
            lock_for_update,
        )
        assert callable(atomic_transition)
        assert callable(lock_for_update)

    def test_import_access(self):
        from core.domain.access import (
            apply_role_scope,
            get_user_role,
            require_role,
        )
        assert callable(apply_role_scope)
        assert callable(get_user_role)
        assert callable(require_role)


# ════════════════════════════════════════════════════════════════════
#  Exception Behaviour Tests
# ════════════════════════════════════════════════════════════════════

class TestDomainExceptions:
    """Unit tests for domain exception classes."""

    def test_domain_error_message(self):
        from core.domain.exceptions import DomainError
        err = DomainError("test message")
        assert str(err) == "test message"
        assert err.code == "domain_error"

    def test_invalid_transition_structured(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition(
            current="open",
            target="closed",
            reason="Case closure has not been requested.",
        )
        assert str(err) == (
            "Invalid state transition from 'open' to 'closed'. "
            "Case closure has not been requested."
        )
        assert err.current == "open"
        assert err.target == "closed"
        assert err.code == "invalid_state_transition"

    def test_invalid_transition_plain_message(self):
        from core.domain.exceptions import InvalidTransition
        err = InvalidTransition("Comments cannot be added to a closed case.")
        assert str(err) == "Comments cannot be added to a closed case."

    def test_city_mismatch_lists_available_cities(self):
        from core.domain.exceptions import CityMismatch
        err = CityMismatch(city="Pune", available=["Delhi", "Mumbai"])
        assert str(err) == (
            "Physiotherapist does not serve Pune. Available cities: Delhi, Mumbai"
        )
        assert err.available == ["Delhi", "Mumbai"]
        assert err.code == "city_mismatch"

    def test_invalid_physiotherapist_default_message(self):
        from core.domain.exceptions import InvalidPhysiotherapist
        assert str(InvalidPhysiotherapist()) == "Invalid physiotherapist."


# ════════════════════════════════════════════════════════════════════
#  Access Helper Unit Tests
# ════════════════════════════════════════════════════════════════════

class TestAccessHelpers:
    """Unit tests for core.domain.access helpers."""

    def test_apply_role_scope_unknown_role_returns_empty(self):
        """A role without a scope rule sees nothing."""
        from unittest.mock import MagicMock
        from core.domain.access import apply_role_scope

        user = MagicMock()
        user.is_authenticated = True
        user.is_superuser = False
        user.role = "stranger"

        qs = MagicMock()
        apply_role_scope(qs, user, scope_rules={})
        qs.none.assert_called_once()

    def test_apply_role_scope_uses_matching_rule(self):
        from unittest.mock import MagicMock
        from core.domain.access import apply_role_scope

        user = MagicMock()
        user.is_authenticated = True
        user.is_superuser = False
        user.role = "patient"

        qs = MagicMock()
        result = apply_role_scope(
            qs, user, scope_rules={"patient": lambda q, u: q.filter(patient=u)},
        )
        qs.filter.assert_called_once_with(patient=user)
        assert result is qs.filter.return_value

    def test_require_role_raises(self):
        """require_role raises PermissionDenied for wrong role."""
        from unittest.mock import MagicMock
        from core.domain.access import require_role
        from core.domain.exceptions import PermissionDenied

        user = MagicMock()
        user.is_authenticated = True
        user.is_superuser = False
        user.role = "patient"

        with pytest.raises(PermissionDenied):
            require_role(user, "admin", "physiotherapist")

    def test_get_user_role_superuser(self):
        """Superusers act as admins."""
        from unittest.mock import MagicMock
        from core.domain.access import get_user_role

        user = MagicMock()
        user.is_authenticated = True
        user.is_superuser = True
        user.role = "patient"
        assert get_user_role(user) == "admin"
