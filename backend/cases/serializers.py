"""
Cases app serializers.

Request serializers only shape and type-check input; every business
rule (required issue details, review range, role guards) is enforced by
``services.py`` so the same rules apply to non-HTTP callers.
"""

from __future__ import annotations

from typing import Any

from rest_framework import serializers

from accounts.serializers import UserSummarySerializer
from core.constants import NO_GENDER_PREFERENCE_VALUES

from .models import Case, CaseComment, CaseStatus, CaseStatusLog, GenderPreference


# ═══════════════════════════════════════════════════════════════════
#  Query Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseFilterSerializer(serializers.Serializer):
    """
    Validates and cleans query-parameter filters for ``GET /api/cases/``.

    All fields are optional.  The view passes the validated dict directly
    to ``CaseQueryService.get_filtered_queryset``.
    """

    status = serializers.ChoiceField(
        choices=CaseStatus.choices,
        required=False,
        help_text="Filter by case status. Options: " + ", ".join([c[0] for c in CaseStatus.choices]) + ".",
    )
    patient = serializers.IntegerField(required=False, min_value=1, help_text="PK of the patient.")
    physiotherapist = serializers.IntegerField(required=False, min_value=1, help_text="PK of the assigned physiotherapist.")
    city = serializers.CharField(required=False, max_length=100, help_text="Exact city name.")


# ═══════════════════════════════════════════════════════════════════
#  Response Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCommentSerializer(serializers.ModelSerializer):
    class Meta:
        model = CaseComment
        fields = ["id", "author", "author_name", "author_role", "message", "timestamp"]
        read_only_fields = fields


class CaseStatusLogSerializer(serializers.ModelSerializer):
    """Read-only serializer for the case audit trail."""

    changed_by_name = serializers.SerializerMethodField()

    class Meta:
        model = CaseStatusLog
        fields = [
            "id",
            "from_status",
            "to_status",
            "changed_by",
            "changed_by_name",
            "message",
            "created_at",
        ]
        read_only_fields = fields

    def get_changed_by_name(self, obj: CaseStatusLog) -> str | None:
        if obj.changed_by is None:
            return None
        return obj.changed_by.display_name


class CaseListSerializer(serializers.ModelSerializer):
    """Compact case row for list endpoints."""

    patient = UserSummarySerializer(read_only=True)
    physiotherapist = UserSummarySerializer(read_only=True, allow_null=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "patient",
            "physiotherapist",
            "city",
            "status",
            "preferred_gender",
            "can_travel",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class CaseDetailSerializer(serializers.ModelSerializer):
    """
    Full case representation including the comment thread and the
    closing review (``null`` until the case is closed).
    """

    patient = UserSummarySerializer(read_only=True)
    physiotherapist = UserSummarySerializer(read_only=True, allow_null=True)
    closure_requested_by = UserSummarySerializer(read_only=True, allow_null=True)
    review = serializers.SerializerMethodField()
    comments = CaseCommentSerializer(many=True, read_only=True)

    class Meta:
        model = Case
        fields = [
            "id",
            "patient",
            "physiotherapist",
            "issue_details",
            "city",
            "can_travel",
            "preferred_gender",
            "status",
            "closure_requested_by",
            "closure_requested_at",
            "review",
            "comments",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_review(self, obj: Case) -> dict | None:
        return obj.review


class CaseOutcomeSerializer(serializers.Serializer):
    """``{"case": ..., "warning": ...}`` envelope for create / auto-assign."""

    case = CaseDetailSerializer(read_only=True)
    warning = serializers.CharField(read_only=True, allow_null=True)


# ═══════════════════════════════════════════════════════════════════
#  Request Serializers
# ═══════════════════════════════════════════════════════════════════


class CaseCreateSerializer(serializers.Serializer):
    """
    Body of ``POST /api/cases/``.

    ``patient_id`` is only used when an admin opens a case on behalf of
    a patient.  ``physiotherapist_id`` requests a specific
    physiotherapist instead of automatic matching.
    """

    patient_id = serializers.IntegerField(required=False, allow_null=True)
    issue_details = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    city = serializers.CharField(required=False, allow_blank=True, max_length=100)
    can_travel = serializers.BooleanField(required=False, default=False)
    preferred_gender = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    physiotherapist_id = serializers.IntegerField(required=False, allow_null=True)

    def validate_preferred_gender(self, value: str | None) -> str:
        if value is None:
            return ""
        value = value.strip().lower()
        if value in NO_GENDER_PREFERENCE_VALUES:
            return GenderPreference.NO_PREFERENCE if value else ""
        if value not in GenderPreference.values:
            raise serializers.ValidationError(
                "Must be one of: " + ", ".join(GenderPreference.values) + "."
            )
        return value


class AssignCaseSerializer(serializers.Serializer):
    physiotherapist_id = serializers.IntegerField(
        help_text="PK of the physiotherapist to assign.",
    )


class CloseCaseSerializer(serializers.Serializer):
    """
    Body of ``POST /api/cases/{id}/close/``.

    ``review`` is passed through untouched; its content is checked by
    ``CaseWorkflowService.validate_review``.
    """

    review = serializers.JSONField(required=False)


class CommentCreateSerializer(serializers.Serializer):
    message = serializers.CharField(allow_blank=True, trim_whitespace=False)


def split_cities(raw: Any) -> list[str]:
    """Parse a ``cities`` query parameter (comma separated)."""
    if not raw:
        return []
    return [c.strip() for c in str(raw).split(",") if c.strip()]
