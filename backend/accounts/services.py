"""
Accounts Service Layer.

This module is the **single source of truth** for all business logic
within the ``accounts`` app.  Views must remain *thin*: they validate
input through serializers, call a service function / method, and
return the result wrapped in a DRF ``Response``.

Architecture
------------
- ``UserRegistrationService``  — role-aware sign-up flow.
- ``UserDirectoryService``     — user lookups used by the case engine
                                 and the directory endpoints.
- ``CurrentUserService``       — "Me" endpoint helpers.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Iterable

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet

from core.domain.exceptions import Conflict, NotFound, PermissionDenied

from .models import City, UserRole

User = get_user_model()

logger = logging.getLogger(__name__)


def resolve_cities(names: Iterable[str]) -> list[City]:
    """
    Return ``City`` rows for ``names``, creating missing ones.

    Names are stripped but otherwise kept verbatim; coverage matching
    against ``Case.city`` is exact.
    """
    cities = []
    for raw in names:
        name = str(raw).strip()
        if not name:
            continue
        city, _ = City.objects.get_or_create(name=name)
        cities.append(city)
    return cities


# ═══════════════════════════════════════════════════════════════════
#  Registration Service
# ═══════════════════════════════════════════════════════════════════


class UserRegistrationService:
    """
    Encapsulates the sign-up flow for all three roles.
    """

    @staticmethod
    def check_admin_code(secret_code: str | None) -> None:
        """
        Verify the admin sign-up code.

        Raises
        ------
        PermissionDenied
            If admin sign-up is disabled (no ``ADMIN_SIGNUP_CODE``
            configured) or the supplied code does not match.
        """
        expected = getattr(settings, "ADMIN_SIGNUP_CODE", "") or ""
        if not expected:
            raise PermissionDenied("Admin sign-up is disabled.")
        if not hmac.compare_digest(str(secret_code or ""), expected):
            raise PermissionDenied("Invalid admin secret code.")

    @staticmethod
    def register_user(validated_data: dict[str, Any]) -> User:
        """
        Create a new user with the requested role.

        Parameters
        ----------
        validated_data : dict
            Cleaned data from ``RegisterRequestSerializer``.  Role-specific
            required fields have already been checked there.

        Returns
        -------
        User
            The newly created (and saved) ``User`` instance.

        Raises
        ------
        PermissionDenied
            Admin role requested without the correct sign-up code.
        Conflict
            A user with this e-mail already exists.
        """
        data = dict(validated_data)
        role = data.pop("role")
        password = data.pop("password")
        secret_code = data.pop("secret_code", None)
        city_names = data.pop("cities_available", [])

        if role == UserRole.ADMIN:
            UserRegistrationService.check_admin_code(secret_code)

        email = data.pop("email").strip().lower()
        if User.objects.filter(Q(email=email) | Q(username=email)).exists():
            raise Conflict("User with this email already exists.")

        try:
            with transaction.atomic():
                user = User.objects.create_user(
                    username=email,
                    email=email,
                    password=password,
                    role=role,
                    **data,
                )
                if role == UserRole.PHYSIOTHERAPIST:
                    user.cities_available.set(resolve_cities(city_names))
        except IntegrityError:
            raise Conflict("User with this email already exists.")

        logger.info("Registered %s user id=%s", role, user.pk)
        return user


# ═══════════════════════════════════════════════════════════════════
#  User Directory Service
# ═══════════════════════════════════════════════════════════════════


class UserDirectoryService:
    """
    Read-side user lookups.

    The case assignment engine depends on three of these:
    ``find_user_by_id``, ``find_physiotherapists_by_city`` and (in
    ``cases.services``) the active-caseload count.
    """

    @staticmethod
    def list_users(
        *,
        role: str | None = None,
        city: str | None = None,
        search: str | None = None,
    ) -> QuerySet[User]:
        """
        Return a filtered queryset of users.

        ``city`` matches a physiotherapist's coverage or a patient's
        home city.
        """
        qs = User.objects.prefetch_related("cities_available").order_by("pk")
        if role:
            qs = qs.filter(role=role)
        if city:
            qs = qs.filter(Q(cities_available__name=city) | Q(city=city)).distinct()
        if search:
            qs = qs.filter(
                Q(name__icontains=search)
                | Q(email__icontains=search)
                | Q(mobile_number__icontains=search)
            )
        return qs

    @staticmethod
    def find_user_by_id(user_id: Any) -> User | None:
        try:
            return (
                User.objects
                .prefetch_related("cities_available")
                .get(pk=user_id)
            )
        except (User.DoesNotExist, ValueError, TypeError):
            return None

    @staticmethod
    def get_user(user_id: Any) -> User:
        user = UserDirectoryService.find_user_by_id(user_id)
        if user is None:
            raise NotFound(f"User with id {user_id} not found.")
        return user

    @staticmethod
    def find_physiotherapists_by_city(city: str) -> QuerySet[User]:
        """
        Physiotherapists whose coverage contains ``city`` (exact match),
        in ascending primary-key order.
        """
        return (
            User.objects
            .filter(
                role=UserRole.PHYSIOTHERAPIST,
                is_active=True,
                cities_available__name=city,
            )
            .distinct()
            .order_by("pk")
        )


# ═══════════════════════════════════════════════════════════════════
#  Current User Service
# ═══════════════════════════════════════════════════════════════════


class CurrentUserService:
    """
    Helpers for the ``/me/`` endpoint.
    """

    @staticmethod
    def get_profile(user: User) -> User:
        return User.objects.prefetch_related("cities_available").get(pk=user.pk)

    @staticmethod
    @transaction.atomic
    def update_profile(user: User, validated_data: dict[str, Any]) -> User:
        """
        Apply a partial profile update.

        ``role``, ``email`` and ``password`` never reach this method;
        ``MeUpdateSerializer`` does not expose them.  Coverage cities
        are only stored for physiotherapists.
        """
        data = dict(validated_data)
        city_names = data.pop("cities_available", None)

        for field, value in data.items():
            setattr(user, field, value)
        if data:
            user.save(update_fields=list(data.keys()))

        if city_names is not None and user.is_physiotherapist:
            user.cities_available.set(resolve_cities(city_names))

        logger.info("User id=%s updated profile fields: %s", user.pk, sorted(validated_data))
        return CurrentUserService.get_profile(user)
