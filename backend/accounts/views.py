"""
Accounts app views.

All views follow the **Thin View** pattern: validate input via
serializers, delegate to the service layer, and return the result
wrapped in a DRF ``Response``.  **No business logic** resides here.

View Map
--------
- ``RegisterView``  — POST /auth/register/
- ``LoginView``     — POST /auth/login/
- ``MeView``        — GET / PATCH /me/
- ``UserViewSet``   — /users/  (list, retrieve)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import (
    CustomTokenObtainPairSerializer,
    LoginRequestSerializer,
    MeUpdateSerializer,
    RegisterRequestSerializer,
    UserDetailSerializer,
)
from .services import (
    CurrentUserService,
    UserDirectoryService,
    UserRegistrationService,
)


# ═══════════════════════════════════════════════════════════════════
#  Authentication Views
# ═══════════════════════════════════════════════════════════════════


class RegisterView(APIView):
    """
    POST /api/accounts/auth/register/

    Public endpoint.  Creates a patient, physiotherapist or (with the
    configured sign-up code) admin account.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Register a new user",
        request=RegisterRequestSerializer,
        responses={
            201: OpenApiResponse(response=UserDetailSerializer, description="User created."),
            400: OpenApiResponse(description="Missing or invalid fields for the chosen role."),
            403: OpenApiResponse(description="Invalid or disabled admin sign-up code."),
            409: OpenApiResponse(description="Email already registered."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = RegisterRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = UserRegistrationService.register_user(serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    POST /api/accounts/auth/login/

    Public endpoint.  Authenticates by e-mail (or username) plus
    password and returns a JWT pair with the user profile.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="Log in",
        request=LoginRequestSerializer,
        responses={
            200: OpenApiResponse(description="Token pair and user profile."),
            400: OpenApiResponse(description="Invalid credentials."),
        },
        tags=["Accounts"],
    )
    def post(self, request: Request) -> Response:
        serializer = CustomTokenObtainPairSerializer(
            data=request.data,
            context={"request": request},
        )
        serializer.is_valid(raise_exception=True)

        payload = dict(serializer.validated_data)  # 'access' and 'refresh'
        payload["user"] = UserDetailSerializer(serializer.user).data

        return Response(payload, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  Current User ("Me") View
# ═══════════════════════════════════════════════════════════════════


class MeView(APIView):
    """
    GET  /api/accounts/me/  → Retrieve current user profile.
    PATCH /api/accounts/me/ → Update own profile fields.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Current user profile",
        responses={200: UserDetailSerializer},
        tags=["Accounts"],
    )
    def get(self, request: Request) -> Response:
        user = CurrentUserService.get_profile(request.user)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Update current user profile",
        request=MeUpdateSerializer,
        responses={200: UserDetailSerializer},
        tags=["Accounts"],
    )
    def patch(self, request: Request) -> Response:
        serializer = MeUpdateSerializer(
            instance=request.user,
            data=request.data,
            partial=True,
        )
        serializer.is_valid(raise_exception=True)
        user = CurrentUserService.update_profile(request.user, serializer.validated_data)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)


# ═══════════════════════════════════════════════════════════════════
#  User Directory ViewSet
# ═══════════════════════════════════════════════════════════════════


class UserViewSet(viewsets.ViewSet):
    """
    /api/accounts/users/

    Directory of users, e.g. physiotherapists serving a city.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List users",
        parameters=[
            OpenApiParameter(name="role", type=str, location=OpenApiParameter.QUERY, description="admin, physiotherapist or patient."),
            OpenApiParameter(name="city", type=str, location=OpenApiParameter.QUERY, description="Covered city (physiotherapists) or home city (patients)."),
            OpenApiParameter(name="search", type=str, location=OpenApiParameter.QUERY, description="Partial match on name, email or mobile number."),
        ],
        responses={200: UserDetailSerializer(many=True)},
        tags=["Accounts"],
    )
    def list(self, request: Request) -> Response:
        """
        GET /api/accounts/users/
        """
        qs = UserDirectoryService.list_users(
            role=request.query_params.get("role"),
            city=request.query_params.get("city"),
            search=request.query_params.get("search"),
        )
        return Response(UserDetailSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Retrieve a user",
        responses={
            200: UserDetailSerializer,
            404: OpenApiResponse(description="User not found."),
        },
        tags=["Accounts"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        """
        GET /api/accounts/users/{id}/
        """
        user = UserDirectoryService.get_user(pk)
        return Response(UserDetailSerializer(user).data, status=status.HTTP_200_OK)
