"""
Core app services — **Service Layer**.

Contains cross-app aggregation logic.  Views delegate all business logic
to the service classes defined here, keeping views thin and ensuring
testability.

Models from other apps are resolved lazily (``apps.get_model`` or
imports inside the method) so that importing ``core`` never triggers an
import cycle with ``accounts`` or ``cases``.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from django.apps import apps
from django.conf import settings
from django.db.models import Count, Q, QuerySet

from core.domain.access import require_role

if TYPE_CHECKING:
    from accounts.models import User


# ═══════════════════════════════════════════════════════════════════
#  Dashboard Aggregation Service
# ═══════════════════════════════════════════════════════════════════

class DashboardAggregationService:
    """
    Produces an aggregated statistics dict consumed by
    ``DashboardStatsSerializer``.

    The dashboard is an administrative view: only admins (and superusers)
    may request it.  All counters are system-wide.
    """

    def __init__(self, user: User) -> None:
        self.user = user

    # ── Public API ──────────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        """Return the full dashboard statistics dictionary."""
        from accounts.models import UserRole
        from cases.models import ACTIVE_STATUSES, CaseStatus

        require_role(
            self.user, UserRole.ADMIN,
            message="Only admins can view the dashboard.",
        )

        case_qs = apps.get_model("cases", "Case").objects.all()

        # Single aggregate query for scalar counts
        aggregates = case_qs.aggregate(
            total_cases=Count("id"),
            active_cases=Count("id", filter=Q(status__in=ACTIVE_STATUSES)),
            closed_cases=Count("id", filter=Q(status=CaseStatus.CLOSED)),
        )
        user_counts = self._get_user_counts()

        return {
            "total_patients": user_counts["total_patients"],
            "total_physiotherapists": user_counts["total_physiotherapists"],
            "total_cases": aggregates["total_cases"],
            "active_cases": aggregates["active_cases"],
            "closed_cases": aggregates["closed_cases"],
            "cases_by_status": self._get_cases_by_status(case_qs),
        }

    # ── Private helpers ─────────────────────────────────────────────

    def _get_user_counts(self) -> dict[str, int]:
        from accounts.models import UserRole

        User = apps.get_model("accounts", "User")
        return User.objects.aggregate(
            total_patients=Count("id", filter=Q(role=UserRole.PATIENT)),
            total_physiotherapists=Count(
                "id", filter=Q(role=UserRole.PHYSIOTHERAPIST),
            ),
        )

    def _get_cases_by_status(self, case_qs: QuerySet) -> list[dict[str, Any]]:
        """
        Group ``case_qs`` by status.

        Every status is listed in lifecycle order, including the ones
        with no cases, so the frontend can render a fixed set of tiles.
        """
        from cases.models import CaseStatus

        counts = {
            row["status"]: row["count"]
            for row in case_qs.values("status").annotate(count=Count("id")).order_by()
        }
        return [
            {"status": value, "label": str(label), "count": counts.get(value, 0)}
            for value, label in CaseStatus.choices
        ]


# ═══════════════════════════════════════════════════════════════════
#  System Constants Service
# ═══════════════════════════════════════════════════════════════════

class SystemConstantsService:
    """
    Gathers all system-wide choice enumerations into a single dict for
    the frontend.

    This service is **stateless**; it does not depend on the requesting
    user.  All constants are public information needed to render sign-up
    forms, dropdowns and labels.
    """

    @staticmethod
    def get_constants() -> dict[str, Any]:
        """Return all system constants as a dict."""
        from accounts.models import Gender, UserRole
        from cases.models import CaseStatus, GenderPreference

        to_list = SystemConstantsService._choices_to_list

        return {
            "cities": [
                {"value": city, "label": city}
                for city in settings.SUPPORTED_CITIES
            ],
            "genders": to_list(Gender),
            "gender_preferences": to_list(GenderPreference),
            "case_statuses": to_list(CaseStatus),
            "roles": to_list(UserRole),
        }

    @staticmethod
    def _choices_to_list(
        choices_class: type,
    ) -> list[dict[str, str]]:
        """
        Convert a Django ``TextChoices`` class to a list of
        ``{"value": ..., "label": ...}`` dicts.
        """
        return [
            {"value": str(value), "label": str(label)}
            for value, label in choices_class.choices
        ]
