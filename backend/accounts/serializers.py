"""
Accounts app serializers.

Contains all Request and Response serializers for the accounts API.
Serializers handle field definitions, read/write constraints, and
basic validation.  **No business logic** lives here — all domain
rules are delegated to ``services.py``.
"""

from __future__ import annotations

from typing import Any

from django.contrib.auth import authenticate, get_user_model
from rest_framework import serializers
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Gender, UserRole

User = get_user_model()

#: Fields a physiotherapist must supply at sign-up.
PHYSIOTHERAPIST_REQUIRED_FIELDS = (
    "dob",
    "practicing_since",
    "degrees",
    "specialities",
    "cities_available",
    "clinic_addresses",
    "mobile_number",
    "gender",
)

#: Fields a patient must supply at sign-up.
PATIENT_REQUIRED_FIELDS = ("age", "city", "mobile_number", "gender")


# ═══════════════════════════════════════════════════════════════════
#  Authentication Serializers
# ═══════════════════════════════════════════════════════════════════


class RegisterRequestSerializer(serializers.Serializer):
    """
    Validates new-user registration data.

    Common required fields: ``name``, ``email``, ``password``, ``role``.
    Role-specific fields are listed in ``PHYSIOTHERAPIST_REQUIRED_FIELDS``
    and ``PATIENT_REQUIRED_FIELDS``; admins additionally send
    ``secret_code`` (checked by the service layer).
    """

    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(
        write_only=True,
        min_length=8,
        style={"input_type": "password"},
        help_text="Minimum 8 characters.",
    )
    role = serializers.ChoiceField(choices=UserRole.choices)
    secret_code = serializers.CharField(
        required=False,
        allow_blank=True,
        write_only=True,
        help_text="Admin sign-up code (admin role only).",
    )

    mobile_number = serializers.CharField(max_length=20, required=False, allow_blank=True)
    gender = serializers.ChoiceField(choices=Gender.choices, required=False)

    # Physiotherapist
    dob = serializers.DateField(required=False)
    practicing_since = serializers.IntegerField(required=False, min_value=1900, max_value=2100)
    degrees = serializers.ListField(child=serializers.CharField(), required=False)
    specialities = serializers.ListField(child=serializers.CharField(), required=False)
    cities_available = serializers.ListField(child=serializers.CharField(), required=False)
    clinic_addresses = serializers.ListField(child=serializers.CharField(), required=False)

    # Patient
    age = serializers.IntegerField(required=False, min_value=0, max_value=150)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Enforce the role-specific required fields and drop the fields
        that do not belong to the chosen role.
        """
        role = attrs["role"]
        if role == UserRole.PHYSIOTHERAPIST:
            required, label = PHYSIOTHERAPIST_REQUIRED_FIELDS, "physiotherapist"
        elif role == UserRole.PATIENT:
            required, label = PATIENT_REQUIRED_FIELDS, "patient"
        else:
            required, label = (), "admin"

        missing = [f for f in required if attrs.get(f) in (None, "", [])]
        if missing:
            raise serializers.ValidationError(
                {f: f"This field is required for {label} accounts." for f in missing}
            )

        allowed = {"name", "email", "password", "role", "secret_code", *required}
        return {k: v for k, v in attrs.items() if k in allowed}


class LoginRequestSerializer(serializers.Serializer):
    """
    Accepts login credentials: e-mail (or username) plus password.
    """

    identifier = serializers.CharField(
        help_text="Email address or username.",
    )
    password = serializers.CharField(
        write_only=True,
        style={"input_type": "password"},
        help_text="User account password.",
    )


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom SimpleJWT serializer that:

    1. Accepts ``identifier`` + ``password`` instead of
       ``username`` + ``password``.
    2. Resolves the user via the ``EmailOrUsernameBackend``.
    3. Injects ``role`` and ``name`` claims into the JWT payload.
    """

    username_field = "identifier"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields.pop(self.username_field, None)
        self.fields["identifier"] = serializers.CharField(
            help_text="Email address or username.",
        )

    @classmethod
    def get_token(cls, user) -> Any:
        """
        Add role claims to the JWT payload so the frontend can route
        without a separate API call.  The server never trusts these
        claims for authorization; it reloads the user on each request.
        """
        token = super().get_token(user)
        token["role"] = user.role
        token["name"] = user.display_name
        return token

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        """
        Authenticate and return ``access`` and ``refresh`` tokens.
        """
        user = authenticate(
            request=self.context.get("request"),
            identifier=attrs.get("identifier"),
            password=attrs.get("password"),
        )

        if user is None:
            raise serializers.ValidationError(
                {"detail": "Invalid credentials."},
                code="authentication",
            )

        if not user.is_active:
            raise serializers.ValidationError(
                {"detail": "User account is disabled."},
                code="authentication",
            )

        refresh = self.get_token(user)
        data = {
            "access": str(refresh.access_token),
            "refresh": str(refresh),
        }

        # Attach user for the view to serialise in the response
        self.user = user

        return data


# ═══════════════════════════════════════════════════════════════════
#  User Serializers
# ═══════════════════════════════════════════════════════════════════


class UserSummarySerializer(serializers.ModelSerializer):
    """
    Minimal user representation nested inside case payloads.
    """

    class Meta:
        model = User
        fields = ["id", "name", "email", "role", "gender"]
        read_only_fields = fields


class UserDetailSerializer(serializers.ModelSerializer):
    """
    Full user representation (used in retrieve, me, listing and the
    registration response).  Passwords are never serialized.
    """

    cities_available = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            "id",
            "name",
            "email",
            "role",
            "mobile_number",
            "gender",
            "dob",
            "practicing_since",
            "degrees",
            "specialities",
            "cities_available",
            "clinic_addresses",
            "age",
            "city",
            "is_active",
            "date_joined",
        ]
        read_only_fields = fields

    def get_cities_available(self, obj: User) -> list[str]:
        return obj.city_names


class MeUpdateSerializer(serializers.ModelSerializer):
    """
    Allows the authenticated user to update their own profile.

    ``email``, ``role`` and ``password`` are deliberately absent and
    cannot be self-modified here.
    """

    cities_available = serializers.ListField(
        child=serializers.CharField(),
        required=False,
        help_text="Physiotherapists only: names of the cities served.",
    )

    class Meta:
        model = User
        fields = [
            "name",
            "mobile_number",
            "gender",
            "dob",
            "practicing_since",
            "degrees",
            "specialities",
            "cities_available",
            "clinic_addresses",
            "age",
            "city",
        ]
