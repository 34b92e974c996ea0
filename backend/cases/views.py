"""
Cases app ViewSets.

Architecture: Views are intentionally thin.
Every view follows the strict three-step pattern:

    1. Parse / validate input via a serializer.
    2. Delegate all business logic to the appropriate service class.
    3. Serialize the result and return a DRF ``Response``.

Domain exceptions raised by the services are turned into HTTP responses
by ``core.domain.exception_handler``; no view catches them.

ViewSets
--------
- ``CaseViewSet`` — The single ViewSet for all case-related endpoints.
  Custom @action methods handle assignment, workflow and sub-resource
  operations so the URL structure stays clean and discoverable.
"""

from __future__ import annotations

from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
)
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from .serializers import (
    AssignCaseSerializer,
    CaseCommentSerializer,
    CaseCreateSerializer,
    CaseDetailSerializer,
    CaseFilterSerializer,
    CaseListSerializer,
    CaseOutcomeSerializer,
    CaseStatusLogSerializer,
    CloseCaseSerializer,
    CommentCreateSerializer,
    split_cities,
)
from .services import (
    CaseAssignmentService,
    CaseCommentService,
    CaseCreationService,
    CaseQueryService,
    CaseWorkflowService,
)


class CaseViewSet(viewsets.ViewSet):
    """
    Central ViewSet for the cases app.

    Uses ``viewsets.ViewSet`` (not ``ModelViewSet``) so every action is
    explicitly defined; there is deliberately no update or delete.

    Permission Strategy
    -------------------
    The base permission is ``IsAuthenticated``.  Role and participant
    checks are enforced exclusively inside the service layer.
    """

    permission_classes = [IsAuthenticated]

    def _detail(self, case, request: Request, code: int = status.HTTP_200_OK) -> Response:
        serializer = CaseDetailSerializer(case, context={"request": request})
        return Response(serializer.data, status=code)

    def _outcome(self, outcome, request: Request, code: int = status.HTTP_200_OK) -> Response:
        serializer = CaseOutcomeSerializer(outcome, context={"request": request})
        return Response(serializer.data, status=code)

    # ── Standard actions ─────────────────────────────────────────────

    @extend_schema(
        summary="List cases",
        description="List cases visible to the authenticated user with optional filtering.",
        parameters=[
            OpenApiParameter(name="status", type=str, location=OpenApiParameter.QUERY, description="Filter by case status."),
            OpenApiParameter(name="patient", type=int, location=OpenApiParameter.QUERY, description="Filter by patient PK."),
            OpenApiParameter(name="physiotherapist", type=int, location=OpenApiParameter.QUERY, description="Filter by physiotherapist PK."),
            OpenApiParameter(name="city", type=str, location=OpenApiParameter.QUERY, description="Filter by exact city name."),
        ],
        responses={200: CaseListSerializer(many=True)},
        tags=["Cases"],
    )
    def list(self, request: Request) -> Response:
        """
        GET /api/cases/
        """
        filter_serializer = CaseFilterSerializer(data=request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        qs = CaseQueryService.get_filtered_queryset(
            request.user, filter_serializer.validated_data,
        )
        return Response(CaseListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Create a case",
        description=(
            "Open a new case.  Patients create cases for themselves; admins "
            "pass patient_id.  The case is matched to a physiotherapist when "
            "possible; a warning explains an unmet gender preference."
        ),
        request=CaseCreateSerializer,
        responses={
            201: OpenApiResponse(response=CaseOutcomeSerializer, description="Case created."),
            400: OpenApiResponse(description="Validation error, invalid physiotherapist or city mismatch."),
            403: OpenApiResponse(description="Caller may not create this case."),
        },
        tags=["Cases"],
    )
    def create(self, request: Request) -> Response:
        """
        POST /api/cases/
        """
        serializer = CaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = CaseCreationService.create_case(serializer.validated_data, request.user)
        return self._outcome(outcome, request, status.HTTP_201_CREATED)

    @extend_schema(
        summary="Retrieve case details",
        responses={
            200: CaseDetailSerializer,
            404: OpenApiResponse(description="Case not found."),
        },
        tags=["Cases"],
    )
    def retrieve(self, request: Request, pk: str = None) -> Response:
        """
        GET /api/cases/{id}/
        """
        case = CaseQueryService.get_case_detail(request.user, pk)
        return self._detail(case, request)

    @action(detail=False, methods=["get"], url_path="unmapped")
    @extend_schema(
        summary="Unassigned open cases",
        description="Physiotherapists default to the cities they serve; admins must pass cities.",
        parameters=[
            OpenApiParameter(name="cities", type=str, location=OpenApiParameter.QUERY, description="Comma-separated city names."),
        ],
        responses={200: CaseListSerializer(many=True)},
        tags=["Cases"],
    )
    def unmapped(self, request: Request) -> Response:
        """
        GET /api/cases/unmapped/?cities=A,B
        """
        qs = CaseQueryService.list_unmapped(
            request.user, split_cities(request.query_params.get("cities")),
        )
        return Response(CaseListSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    # ── Assignment @actions ──────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="assign")
    @extend_schema(
        summary="Assign a physiotherapist",
        request=AssignCaseSerializer,
        responses={
            200: CaseDetailSerializer,
            400: OpenApiResponse(description="Invalid physiotherapist or city mismatch."),
            403: OpenApiResponse(description="Permission denied."),
            409: OpenApiResponse(description="Already assigned or not open."),
        },
        tags=["Cases – Assignment"],
    )
    def assign(self, request: Request, pk: str = None) -> Response:
        """
        POST /api/cases/{id}/assign/
        """
        serializer = AssignCaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseQueryService.get_case(pk)
        case = CaseAssignmentService.assign_case(
            case, serializer.validated_data["physiotherapist_id"], request.user,
        )
        return self._detail(case, request)

    @action(detail=True, methods=["post"], url_path="auto-assign")
    @extend_schema(
        summary="Run automatic matching again",
        request=None,
        responses={
            200: CaseOutcomeSerializer,
            403: OpenApiResponse(description="Admins only."),
            409: OpenApiResponse(description="Already assigned or not open."),
        },
        tags=["Cases – Assignment"],
    )
    def auto_assign(self, request: Request, pk: str = None) -> Response:
        """
        POST /api/cases/{id}/auto-assign/
        """
        case = CaseQueryService.get_case(pk)
        outcome = CaseAssignmentService.auto_assign(case, request.user)
        return self._outcome(outcome, request)

    # ── Workflow @actions ────────────────────────────────────────────

    @action(detail=True, methods=["post"], url_path="request-closure")
    @extend_schema(
        summary="Request closure",
        request=None,
        responses={
            200: CaseDetailSerializer,
            403: OpenApiResponse(description="Only the assigned physiotherapist or an admin."),
            409: OpenApiResponse(description="Case is not open or in progress."),
        },
        tags=["Cases – Workflow"],
    )
    def request_closure(self, request: Request, pk: str = None) -> Response:
        """
        POST /api/cases/{id}/request-closure/
        """
        case = CaseQueryService.get_case_detail(request.user, pk)
        case = CaseWorkflowService.request_closure(case, request.user)
        return self._detail(case, request)

    @action(detail=True, methods=["post"], url_path="close")
    @extend_schema(
        summary="Close with review",
        request=CloseCaseSerializer,
        responses={
            200: CaseDetailSerializer,
            400: OpenApiResponse(description="Missing or invalid review."),
            403: OpenApiResponse(description="Only the patient or an admin."),
            409: OpenApiResponse(description="Case closure has not been requested."),
        },
        tags=["Cases – Workflow"],
    )
    def close(self, request: Request, pk: str = None) -> Response:
        """
        POST /api/cases/{id}/close/
        """
        serializer = CloseCaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseQueryService.get_case_detail(request.user, pk)
        case = CaseWorkflowService.close_case(
            case, serializer.validated_data.get("review"), request.user,
        )
        return self._detail(case, request)

    # ── Sub-resources ────────────────────────────────────────────────

    @action(detail=True, methods=["get", "post"], url_path="comments")
    @extend_schema(
        methods=["GET"],
        summary="List comments",
        responses={200: CaseCommentSerializer(many=True)},
        tags=["Cases – Comments"],
    )
    @extend_schema(
        methods=["POST"],
        summary="Add a comment",
        request=CommentCreateSerializer,
        responses={
            201: CaseCommentSerializer,
            400: OpenApiResponse(description="Blank message."),
            403: OpenApiResponse(description="Not a participant."),
            409: OpenApiResponse(description="Case is closed."),
        },
        tags=["Cases – Comments"],
    )
    def comments(self, request: Request, pk: str = None) -> Response:
        """
        GET  /api/cases/{id}/comments/
        POST /api/cases/{id}/comments/
        """
        if request.method == "GET":
            qs = CaseCommentService.list_comments(pk, request.user)
            return Response(CaseCommentSerializer(qs, many=True).data, status=status.HTTP_200_OK)

        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        case = CaseQueryService.get_case_detail(request.user, pk)
        comment = CaseCommentService.add_comment(
            case, serializer.validated_data["message"], request.user,
        )
        return Response(CaseCommentSerializer(comment).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["get"], url_path="status-log")
    @extend_schema(
        summary="Status history",
        responses={200: CaseStatusLogSerializer(many=True)},
        tags=["Cases"],
    )
    def status_log(self, request: Request, pk: str = None) -> Response:
        """
        GET /api/cases/{id}/status-log/
        """
        qs = CaseQueryService.get_status_log(request.user, pk)
        return Response(CaseStatusLogSerializer(qs, many=True).data, status=status.HTTP_200_OK)
