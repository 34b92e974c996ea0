"""
Root conftest.py — shared fixtures for the entire test suite.

Provides:
  - ``api_client`` fixture returning a DRF ``APIClient``.
  - ``create_user`` factory fixture for creating test users of any role.
  - ``auth_client`` factory returning an ``APIClient`` carrying a JWT.
"""

from __future__ import annotations

import pytest
from rest_framework.test import APIClient


@pytest.fixture()
def api_client() -> APIClient:
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture()
def create_user(db):
    """
    Factory fixture that creates a user with sensible defaults.

    Usage::

        def test_something(create_user):
            patient = create_user()
            physio = create_user(
                role="physiotherapist",
                gender="female",
                cities=["Mumbai", "Pune"],
            )
    """
    from accounts.models import UserRole, User
    from accounts.services import resolve_cities

    _counter = 0

    def _factory(
        *,
        name: str | None = None,
        email: str | None = None,
        password: str = "TestPass123!",
        role: str = UserRole.PATIENT,
        gender: str = "",
        cities: list[str] | None = None,
        is_active: bool = True,
        **kwargs,
    ) -> User:
        nonlocal _counter
        _counter += 1
        if name is None:
            name = f"Test {role.title()} {_counter}"
        if email is None:
            email = f"{role}{_counter}@test.local"

        user = User.objects.create_user(
            username=email,
            email=email,
            password=password,
            name=name,
            role=role,
            gender=gender,
            is_active=is_active,
            **kwargs,
        )
        if cities:
            user.cities_available.set(resolve_cities(cities))
        return user

    return _factory


@pytest.fixture()
def auth_client():
    """
    Returns a helper that wraps a user in an ``APIClient`` carrying a
    valid JWT access token.

    Usage::

        def test_protected(auth_client, create_user):
            client = auth_client(create_user(role="admin"))
            resp = client.get("/api/core/dashboard/")
            assert resp.status_code == 200
    """
    from rest_framework_simplejwt.tokens import AccessToken

    def _make(user) -> APIClient:
        client = APIClient()
        token = AccessToken.for_user(user)
        client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
        return client

    return _make
