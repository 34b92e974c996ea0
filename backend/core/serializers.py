"""
Core app serializers.

**Response-only** serializers for the aggregated endpoints served by the
core app.  They work exclusively with plain Python dicts / lists
produced by the service layer, keeping the core app decoupled from the
concrete models in ``cases`` and ``accounts``.
"""

from __future__ import annotations

from rest_framework import serializers


# ════════════════════════════════════════════════════════════════════
#  Dashboard Statistics
# ════════════════════════════════════════════════════════════════════

class CasesByStatusSerializer(serializers.Serializer):
    """
    Breakdown of case counts grouped by status.

    Example::

        {"status": "open", "label": "Open", "count": 12}
    """

    status = serializers.CharField(
        help_text="Machine-readable status key (e.g. 'open', 'closed').",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the status.",
    )
    count = serializers.IntegerField(
        help_text="Number of cases currently in this status.",
    )


class DashboardStatsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/dashboard/``.

    Response shape::

        {
            "total_patients": 120,
            "total_physiotherapists": 18,
            "total_cases": 150,
            "active_cases": 42,
            "closed_cases": 108,
            "cases_by_status": [...]
        }
    """

    total_patients = serializers.IntegerField(
        help_text="Registered patient accounts.",
    )
    total_physiotherapists = serializers.IntegerField(
        help_text="Registered physiotherapist accounts.",
    )
    total_cases = serializers.IntegerField(
        help_text="Total number of cases.",
    )
    active_cases = serializers.IntegerField(
        help_text="Cases that are open, in progress or pending closure.",
    )
    closed_cases = serializers.IntegerField(
        help_text="Cases that have been closed with a review.",
    )
    cases_by_status = CasesByStatusSerializer(
        many=True,
        help_text="Case count grouped by workflow status.",
    )


# ════════════════════════════════════════════════════════════════════
#  System Constants / Enums
# ════════════════════════════════════════════════════════════════════

class ChoiceItemSerializer(serializers.Serializer):
    """
    A single key-label pair representing one choice/enum option.

    Example::

        {"value": "open", "label": "Open"}
    """

    value = serializers.CharField(
        help_text="Machine-readable value to send in API requests.",
    )
    label = serializers.CharField(
        help_text="Human-readable display label for the UI.",
    )


class SystemConstantsSerializer(serializers.Serializer):
    """
    Top-level response serializer for ``GET /api/core/constants/``.

    Provides all system-wide choice enumerations so the frontend can
    build dropdowns and labels without hardcoding values.
    """

    cities = ChoiceItemSerializer(
        many=True,
        help_text="Cities offered at sign-up and case creation.",
    )
    genders = ChoiceItemSerializer(many=True)
    gender_preferences = ChoiceItemSerializer(many=True)
    case_statuses = ChoiceItemSerializer(
        many=True,
        help_text="All possible case workflow statuses (CaseStatus enum).",
    )
    roles = ChoiceItemSerializer(many=True)
