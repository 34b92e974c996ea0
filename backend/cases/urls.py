"""
Cases app URL configuration.

All routes are registered under the ``/api/cases/`` prefix.

Route Hierarchy
---------------
  /api/cases/                              → list / create
  /api/cases/{id}/                         → retrieve
  GET  /api/cases/unmapped/?cities=A,B     → unassigned open cases

  ── Assignment @actions ─────────────────────────────────────────
  POST /api/cases/{id}/assign/             → assign a physiotherapist
  POST /api/cases/{id}/auto-assign/        → re-run matching (admin)

  ── Workflow @actions ───────────────────────────────────────────
  POST /api/cases/{id}/request-closure/    → open/in_progress → pending_closure
  POST /api/cases/{id}/close/              → pending_closure → closed

  ── Sub-resource @actions ───────────────────────────────────────
  GET  /api/cases/{id}/comments/
  POST /api/cases/{id}/comments/
  GET  /api/cases/{id}/status-log/
"""

from rest_framework.routers import DefaultRouter

from .views import CaseViewSet

router = DefaultRouter()
router.register(
    prefix=r"cases",
    viewset=CaseViewSet,
    basename="case",
)

urlpatterns = router.urls
