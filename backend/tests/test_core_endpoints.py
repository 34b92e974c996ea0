"""
Integration tests for core endpoints.

Scope in this file:
- GET /api/core/constants/
- GET /api/core/dashboard/
"""

from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from accounts.models import UserRole, User
from cases.models import Case, CaseStatus


class TestCoreEndpoints(TestCase):
    @classmethod
    def setUpTestData(cls):
        cls.user_password = "CoreEndpointsP@ss123"

        def make(email, role, **extra):
            return User.objects.create_user(
                username=email,
                email=email,
                password=cls.user_password,
                name=email.split("@")[0],
                role=role,
                **extra,
            )

        cls.admin_user = make("dashboard_admin@example.com", UserRole.ADMIN)
        cls.superuser = make(
            "dashboard_root@example.com", UserRole.PATIENT, is_superuser=True, is_staff=True,
        )
        cls.patient_a = make("patient_a@example.com", UserRole.PATIENT)
        cls.patient_b = make("patient_b@example.com", UserRole.PATIENT)
        cls.physio = make("physio@example.com", UserRole.PHYSIOTHERAPIST)

        # Dashboard counts only need deterministic statuses, so the
        # cases are inserted directly instead of going through the workflow.
        for patient, case_status in [
            (cls.patient_a, CaseStatus.OPEN),
            (cls.patient_a, CaseStatus.IN_PROGRESS),
            (cls.patient_b, CaseStatus.IN_PROGRESS),
            (cls.patient_b, CaseStatus.CLOSED),
        ]:
            Case.objects.create(
                patient=patient,
                physiotherapist=None if case_status == CaseStatus.OPEN else cls.physio,
                issue_details="Seeded",
                city="Mumbai",
                status=case_status,
            )

    def setUp(self):
        self.client = APIClient()

    # ── Constants ────────────────────────────────────────────────────

    @override_settings(SUPPORTED_CITIES=["Delhi", "Mumbai"])
    def test_constants_are_public(self):
        resp = self.client.get(reverse("core:system-constants"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(
            resp.data["cities"],
            [{"value": "Delhi", "label": "Delhi"}, {"value": "Mumbai", "label": "Mumbai"}],
        )
        self.assertEqual(
            [item["value"] for item in resp.data["case_statuses"]],
            ["open", "in_progress", "pending_closure", "closed"],
        )
        self.assertEqual(
            [item["value"] for item in resp.data["roles"]],
            ["admin", "physiotherapist", "patient"],
        )
        self.assertEqual(
            [item["value"] for item in resp.data["genders"]],
            ["male", "female", "other"],
        )
        self.assertIn(
            {"value": "no-preference", "label": "No Preference"},
            resp.data["gender_preferences"],
        )

    def test_constants_ignore_bad_token(self):
        self.client.credentials(HTTP_AUTHORIZATION="Bearer not-a-token")
        resp = self.client.get(reverse("core:system-constants"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    # ── Dashboard ────────────────────────────────────────────────────

    def test_dashboard_totals_for_admin(self):
        self.client.force_authenticate(user=self.admin_user)

        resp = self.client.get(reverse("core:dashboard-stats"))

        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        # superuser was stored with the patient role
        self.assertEqual(resp.data["total_patients"], 3)
        self.assertEqual(resp.data["total_physiotherapists"], 1)
        self.assertEqual(resp.data["total_cases"], 4)
        self.assertEqual(resp.data["active_cases"], 3)
        self.assertEqual(resp.data["closed_cases"], 1)
        self.assertEqual(
            [(row["status"], row["count"]) for row in resp.data["cases_by_status"]],
            [("open", 1), ("in_progress", 2), ("pending_closure", 0), ("closed", 1)],
        )

    def test_superuser_sees_dashboard(self):
        self.client.force_authenticate(user=self.superuser)
        resp = self.client.get(reverse("core:dashboard-stats"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)

    def test_dashboard_forbidden_for_non_admins(self):
        for user in (self.patient_a, self.physio):
            self.client.force_authenticate(user=user)
            resp = self.client.get(reverse("core:dashboard-stats"))
            self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
            self.assertEqual(resp.data["code"], "permission_denied")

    def test_dashboard_requires_authentication(self):
        resp = self.client.get(reverse("core:dashboard-stats"))
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)
