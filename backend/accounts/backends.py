"""
Custom authentication backend for e-mail or username login.

Allows users to authenticate using either their ``email`` (compared
case-insensitively) or their ``username`` together with their
``password``.

This backend is registered in ``settings.AUTHENTICATION_BACKENDS``
so that Django's ``authenticate()`` call dispatches to it.
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend
from django.db.models import Q

User = get_user_model()


class EmailOrUsernameBackend(ModelBackend):
    """
    Authenticate against ``email`` or ``username``.

    Accepts the value either as ``identifier=`` (API login) or as the
    standard ``username=`` keyword (Django admin login form).
    """

    def authenticate(self, request, identifier=None, password=None, **kwargs):
        """
        Resolve the user by *identifier* and verify *password*.

        Returns
        -------
        User | None
            The authenticated user, or ``None`` on failure.
        """
        if identifier is None:
            identifier = kwargs.get(User.USERNAME_FIELD)
        if identifier is None or password is None:
            return None

        identifier = identifier.strip()
        try:
            user = User.objects.get(
                Q(username=identifier) | Q(email=identifier.lower())
            )
        except User.DoesNotExist:
            # Run the default password hasher to mitigate timing attacks
            User().set_password(password)
            return None
        except User.MultipleObjectsReturned:
            # One account's username equals another's email; refuse to guess
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
