"""
Core app views — **Thin Views**.

Each view delegates all business logic to the corresponding service in
``core.services``.  Views are responsible only for calling the service
with the authenticated user and serialising the result.

No model imports, no aggregation logic, no cross-app queries.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import DashboardStatsSerializer, SystemConstantsSerializer
from .services import DashboardAggregationService, SystemConstantsService


class DashboardStatsView(APIView):
    """
    **GET /api/core/dashboard/**

    Return system-wide dashboard statistics.

    **Authentication**: Required.  Non-admins receive ``403``.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Dashboard statistics",
        description="Return patient, physiotherapist and case totals with a per-status breakdown.",
        responses={
            200: OpenApiResponse(response=DashboardStatsSerializer, description="Dashboard stats."),
            403: OpenApiResponse(description="Admins only."),
        },
        tags=["Dashboard"],
    )
    def get(self, request: Request) -> Response:
        service = DashboardAggregationService(user=request.user)
        data = service.get_stats()
        serializer = DashboardStatsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)


class SystemConstantsView(APIView):
    """
    **GET /api/core/constants/**

    Public endpoint returning every choice enumeration the frontend
    needs before a user has signed in.

    **Response** (``200 OK``):
        Serialised by ``SystemConstantsSerializer``.
    """

    permission_classes = [AllowAny]
    authentication_classes = []

    @extend_schema(
        summary="System constants",
        description=(
            "Return supported cities, genders, case statuses and roles so "
            "the frontend can build dropdowns and labels."
        ),
        responses={200: OpenApiResponse(response=SystemConstantsSerializer, description="System constants.")},
        tags=["System"],
    )
    def get(self, request: Request) -> Response:
        data = SystemConstantsService.get_constants()
        serializer = SystemConstantsSerializer(data)
        return Response(serializer.data, status=status.HTTP_200_OK)
