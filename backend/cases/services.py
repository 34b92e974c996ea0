"""
Cases app Service Layer.

This module is the **single source of truth** for all business logic
in the ``cases`` app.  Views must remain thin: validate input via
serializers, call a service method, and return the result wrapped in
a DRF ``Response``.

Architecture
------------
- ``CaseQueryService``       — Role-scoped querysets and lookups.
- ``CaseAssignmentService``  — Physiotherapist matching and assignment.
- ``CaseCreationService``    — Case creation with creation-time matching.
- ``CaseWorkflowService``    — Status transitions (closure request, close).
- ``CaseCommentService``     — Append-only comment thread.

Workflow State-Machine Overview
--------------------------------
::

  (create) ──▶ OPEN ──assign──▶ IN_PROGRESS
                 │                  │
                 └──request-closure─┴──▶ PENDING_CLOSURE ──close──▶ CLOSED

A case created with a successful match starts directly in
``IN_PROGRESS``.  Comments may be added in every state except ``CLOSED``.
Status never moves backwards and ``physiotherapist`` is never
overwritten once set.

Assignment Algorithm
--------------------
1. An explicitly chosen physiotherapist must exist, be a
   physiotherapist and cover the case city; otherwise the request fails.
2. Otherwise candidates are the physiotherapists covering the city, in
   ascending primary-key order.  A gender preference narrows them; if
   nobody matches, nothing is assigned and a warning is returned (no
   fallback to other genders).
3. The candidate with the strictly smallest active caseload wins; ties
   go to the earliest candidate in that order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence, TypeVar

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, Q, QuerySet
from django.utils import timezone

from accounts.models import UserRole
from accounts.services import UserDirectoryService
from core.constants import (
    NO_GENDER_PREFERENCE_VALUES,
    REVIEW_RATING_MAX,
    REVIEW_RATING_MIN,
)
from core.domain.access import apply_role_scope, get_user_role, require_role
from core.domain.exceptions import (
    AlreadyAssigned,
    CityMismatch,
    InvalidPhysiotherapist,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from core.domain.transactions import atomic_transition, lock_for_update

from .models import (
    ACTIVE_STATUSES,
    Case,
    CaseComment,
    CaseStatus,
    CaseStatusLog,
    GenderPreference,
)

User = get_user_model()
logger = logging.getLogger(__name__)

T = TypeVar("T")


# ═══════════════════════════════════════════════════════════════════
#  Valid transition map
# ═══════════════════════════════════════════════════════════════════

#: Maps (from_status, to_status) → set of roles that may trigger the
#: transition.  Transitions not present here are illegal.  Per-case
#: participant checks (assigned physiotherapist, owning patient) are
#: applied on top of this by the individual operations.
ALLOWED_TRANSITIONS: dict[tuple[str, str], set[str]] = {
    (CaseStatus.OPEN, CaseStatus.IN_PROGRESS): {UserRole.ADMIN, UserRole.PHYSIOTHERAPIST},
    (CaseStatus.OPEN, CaseStatus.PENDING_CLOSURE): {UserRole.ADMIN, UserRole.PHYSIOTHERAPIST},
    (CaseStatus.IN_PROGRESS, CaseStatus.PENDING_CLOSURE): {UserRole.ADMIN, UserRole.PHYSIOTHERAPIST},
    (CaseStatus.PENDING_CLOSURE, CaseStatus.CLOSED): {UserRole.ADMIN, UserRole.PATIENT},
}


def _sources_for(target_status: str) -> set[str]:
    return {src for (src, dst) in ALLOWED_TRANSITIONS if dst == target_status}


@dataclass(frozen=True)
class AssignmentDecision:
    """Result of the matching algorithm.  Both fields may be ``None``."""

    physiotherapist: Any = None
    warning: str | None = None


@dataclass(frozen=True)
class CaseOutcome:
    """A case returned together with an optional assignment warning."""

    case: Case
    warning: str | None = None


def normalize_gender_preference(value: str | None) -> str | None:
    """
    Lower-case a gender preference; ``None`` when it means "anyone".
    """
    if value is None:
        return None
    value = str(value).strip().lower()
    if value in NO_GENDER_PREFERENCE_VALUES:
        return None
    return value


def pick_least_loaded(
    candidates: Sequence[T],
    caseload: Callable[[T], int] = lambda c: c.active_caseload,
) -> T | None:
    """
    Return the candidate with the strictly smallest caseload.

    Candidates are scanned in the given order and a later candidate only
    replaces the current best when its caseload is strictly smaller, so
    ties resolve to the earliest one.
    """
    best = None
    best_load = None
    for candidate in candidates:
        load = caseload(candidate)
        if best is None or load < best_load:
            best, best_load = candidate, load
    return best


def _log_status(case: Case, from_status: str, to_status: str, user: Any, message: str = "") -> None:
    CaseStatusLog.objects.create(
        case=case,
        from_status=from_status,
        to_status=to_status,
        changed_by=user if getattr(user, "is_authenticated", False) else None,
        message=message,
    )


# ═══════════════════════════════════════════════════════════════════
#  Case Query Service
# ═══════════════════════════════════════════════════════════════════


def _physiotherapist_scope(qs: QuerySet, user: Any) -> QuerySet:
    # Own cases plus the unassigned open cases in the cities they serve.
    return qs.filter(
        Q(physiotherapist=user)
        | Q(
            physiotherapist__isnull=True,
            status=CaseStatus.OPEN,
            city__in=user.cities_available.values_list("name", flat=True),
        )
    )


#: Role → case visibility filter.
CASE_SCOPE_RULES = {
    UserRole.ADMIN: lambda qs, u: qs,
    UserRole.PHYSIOTHERAPIST: _physiotherapist_scope,
    UserRole.PATIENT: lambda qs, u: qs.filter(patient=u),
}


class CaseQueryService:
    """
    Constructs filtered, role-scoped querysets for listing cases.

    Role Scoping Rules
    ------------------
    - **Admin**: every case.
    - **Physiotherapist**: cases assigned to them, plus unassigned
      ``open`` cases in the cities they cover.
    - **Patient**: their own cases.
    """

    @staticmethod
    def _base_queryset() -> QuerySet:
        return Case.objects.select_related(
            "patient",
            "physiotherapist",
            "closure_requested_by",
        )

    @staticmethod
    def get_filtered_queryset(
        requesting_user: Any,
        filters: dict[str, Any] | None = None,
    ) -> QuerySet:
        """
        Build a role-scoped, filtered queryset of ``Case`` objects.

        Supported ``filters`` keys: ``patient``, ``physiotherapist``
        (user PKs), ``status`` and ``city``.
        """
        qs = apply_role_scope(
            CaseQueryService._base_queryset(),
            requesting_user,
            scope_rules=CASE_SCOPE_RULES,
        )
        filters = filters or {}
        if filters.get("patient") is not None:
            qs = qs.filter(patient_id=filters["patient"])
        if filters.get("physiotherapist") is not None:
            qs = qs.filter(physiotherapist_id=filters["physiotherapist"])
        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("city"):
            qs = qs.filter(city=filters["city"])
        return qs.order_by("-created_at", "-id")

    @staticmethod
    def get_case_detail(requesting_user: Any, case_id: Any) -> Case:
        """
        Return a case visible to ``requesting_user``.

        Raises
        ------
        NotFound
            The case does not exist or lies outside the user's scope.
        """
        qs = apply_role_scope(
            CaseQueryService._base_queryset(),
            requesting_user,
            scope_rules=CASE_SCOPE_RULES,
        )
        try:
            return qs.get(pk=case_id)
        except (Case.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Case with id {case_id} not found.")

    @staticmethod
    def get_case(case_id: Any) -> Case:
        """Unscoped lookup for write actions that enforce their own guards."""
        try:
            return CaseQueryService._base_queryset().get(pk=case_id)
        except (Case.DoesNotExist, ValueError, TypeError):
            raise NotFound(f"Case with id {case_id} not found.")

    @staticmethod
    def list_unmapped(requesting_user: Any, cities: Iterable[str] | None = None) -> QuerySet:
        """
        Unassigned ``open`` cases in the given cities, newest first.

        Physiotherapists that pass no cities get the cities they cover.
        Admins must name at least one city.
        """
        require_role(
            requesting_user,
            UserRole.ADMIN,
            UserRole.PHYSIOTHERAPIST,
            message="Only admins and physiotherapists can browse unassigned cases.",
        )
        city_list = [c.strip() for c in (cities or []) if c and c.strip()]
        if not city_list:
            if get_user_role(requesting_user) == UserRole.PHYSIOTHERAPIST:
                city_list = requesting_user.city_names
            else:
                raise ValidationError("Cities parameter is required.")

        return (
            CaseQueryService._base_queryset()
            .filter(
                physiotherapist__isnull=True,
                status=CaseStatus.OPEN,
                city__in=city_list,
            )
            .order_by("-created_at", "-id")
        )

    @staticmethod
    def get_status_log(requesting_user: Any, case_id: Any) -> QuerySet:
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        return case.status_logs.select_related("changed_by").order_by("created_at", "id")


# ═══════════════════════════════════════════════════════════════════
#  Case Assignment Service
# ═══════════════════════════════════════════════════════════════════


class CaseAssignmentService:
    """
    Matches cases to physiotherapists and performs the assignment write.

    The assignment write is a conditional update
    (``WHERE physiotherapist IS NULL``) executed while holding the case
    row lock, so two concurrent assignments cannot both succeed.
    """

    @staticmethod
    def count_active_cases(physiotherapist: Any) -> int:
        """Number of the physiotherapist's cases that are not closed."""
        return Case.objects.filter(
            physiotherapist=physiotherapist,
            status__in=ACTIVE_STATUSES,
        ).count()

    @staticmethod
    def find_candidates(city: str) -> list:
        """
        Physiotherapists covering ``city`` in ascending PK order, each
        annotated with ``active_caseload``.
        """
        return list(
            UserDirectoryService.find_physiotherapists_by_city(city)
            .annotate(
                active_caseload=Count(
                    "physiotherapist_cases",
                    filter=Q(physiotherapist_cases__status__in=ACTIVE_STATUSES),
                    distinct=True,
                )
            )
            .order_by("pk")
        )

    @staticmethod
    def decide(city: str, preferred_gender: str | None = None) -> AssignmentDecision:
        """
        Run automatic matching for a case in ``city``.

        Returns
        -------
        AssignmentDecision
            ``physiotherapist`` is the chosen user or ``None``;
            ``warning`` is set only when a gender preference could not be
            honoured.
        """
        candidates = CaseAssignmentService.find_candidates(city)
        if not candidates:
            logger.info("No physiotherapist covers %s; case stays unassigned", city)
            return AssignmentDecision()

        gender = normalize_gender_preference(preferred_gender)
        if gender:
            matching = [c for c in candidates if (c.gender or "").lower() == gender]
            if not matching:
                warning = (
                    f"No {gender} physiotherapist is available in {city}. "
                    f"The case has been left unassigned."
                )
                logger.info("Gender preference miss: %s", warning)
                return AssignmentDecision(warning=warning)
            candidates = matching

        chosen = pick_least_loaded(candidates)
        logger.info(
            "Matched physiotherapist id=%s (active caseload %s) for %s",
            chosen.pk, chosen.active_caseload, city,
        )
        return AssignmentDecision(physiotherapist=chosen)

    @staticmethod
    def validate_physiotherapist(physiotherapist_id: Any, city: str) -> Any:
        """
        Resolve an explicitly chosen physiotherapist for ``city``.

        Raises
        ------
        InvalidPhysiotherapist
            Unknown or deactivated user, or the user is not a physiotherapist.
        CityMismatch
            The physiotherapist does not cover ``city``.
        """
        physio = UserDirectoryService.find_user_by_id(physiotherapist_id)
        if physio is None or not physio.is_physiotherapist or not physio.is_active:
            raise InvalidPhysiotherapist()
        available = physio.city_names
        if city not in available:
            raise CityMismatch(city=city, available=available)
        return physio

    @staticmethod
    def choose_physiotherapist(
        city: str,
        *,
        preferred_physiotherapist_id: Any = None,
        preferred_gender: str | None = None,
    ) -> AssignmentDecision:
        """
        Entry point of the engine.

        An explicit choice is validated and used as is; otherwise
        automatic matching runs.  Nothing is written.
        """
        if preferred_physiotherapist_id not in (None, ""):
            return AssignmentDecision(
                physiotherapist=CaseAssignmentService.validate_physiotherapist(
                    preferred_physiotherapist_id, city,
                ),
            )
        return CaseAssignmentService.decide(city, preferred_gender)

    @staticmethod
    def _write_assignment(case: Case, physio: Any, requesting_user: Any) -> Case:
        updated = (
            Case.objects
            .filter(pk=case.pk, physiotherapist__isnull=True, status=CaseStatus.OPEN)
            .update(
                physiotherapist=physio,
                status=CaseStatus.IN_PROGRESS,
                updated_at=timezone.now(),
            )
        )
        if updated == 0:
            raise AlreadyAssigned()

        _log_status(
            case,
            CaseStatus.OPEN,
            CaseStatus.IN_PROGRESS,
            requesting_user,
            message=f"Assigned to {physio.display_name}.",
        )
        logger.info("Case #%s assigned to physiotherapist id=%s", case.pk, physio.pk)
        case.refresh_from_db()
        return case

    @staticmethod
    def _check_assignable(case: Case, requesting_user: Any) -> None:
        if get_user_role(requesting_user) not in ALLOWED_TRANSITIONS[
            (CaseStatus.OPEN, CaseStatus.IN_PROGRESS)
        ]:
            raise PermissionDenied("Only admins and physiotherapists can assign cases.")
        if case.physiotherapist_id is not None:
            raise AlreadyAssigned()
        if case.status != CaseStatus.OPEN:
            raise InvalidTransition(
                current=case.status,
                target=CaseStatus.IN_PROGRESS,
                reason="Only open cases can be assigned.",
            )

    @staticmethod
    @transaction.atomic
    def assign_case(case: Case, physiotherapist_id: Any, requesting_user: Any) -> Case:
        """
        Manually assign ``case`` to the given physiotherapist.

        Admins may assign anyone eligible; a physiotherapist may only
        assign themselves.

        Raises
        ------
        PermissionDenied
            Caller is a patient, or a physiotherapist assigning someone else.
        AlreadyAssigned
            The case already has a physiotherapist (including losing a race).
        InvalidTransition
            The case is no longer ``open``.
        InvalidPhysiotherapist / CityMismatch
            See ``validate_physiotherapist``.
        """
        role = get_user_role(requesting_user)
        if role == UserRole.PHYSIOTHERAPIST and str(physiotherapist_id) != str(requesting_user.pk):
            raise PermissionDenied("Physiotherapists can only assign cases to themselves.")

        locked = lock_for_update(Case, case.pk)
        CaseAssignmentService._check_assignable(locked, requesting_user)
        physio = CaseAssignmentService.validate_physiotherapist(physiotherapist_id, locked.city)
        return CaseAssignmentService._write_assignment(locked, physio, requesting_user)

    @staticmethod
    @transaction.atomic
    def auto_assign(case: Case, requesting_user: Any) -> CaseOutcome:
        """
        Re-run automatic matching for a still-unassigned ``open`` case.

        Admin only.  When no candidate is found the case is returned
        unchanged together with any gender-preference warning.
        """
        require_role(requesting_user, UserRole.ADMIN, message="Only admins can auto-assign cases.")
        locked = lock_for_update(Case, case.pk)
        CaseAssignmentService._check_assignable(locked, requesting_user)

        decision = CaseAssignmentService.decide(locked.city, locked.preferred_gender)
        if decision.physiotherapist is None:
            return CaseOutcome(case=locked, warning=decision.warning)

        assigned = CaseAssignmentService._write_assignment(
            locked, decision.physiotherapist, requesting_user,
        )
        return CaseOutcome(case=assigned, warning=decision.warning)


# ═══════════════════════════════════════════════════════════════════
#  Case Creation Service
# ═══════════════════════════════════════════════════════════════════


class CaseCreationService:
    """
    Creates cases and runs creation-time matching.

    All validation happens before the insert, so a rejected request
    never leaves a case behind.
    """

    @staticmethod
    def _resolve_patient(patient_id: Any, requesting_user: Any) -> Any:
        role = get_user_role(requesting_user)
        if role == UserRole.PATIENT:
            if patient_id not in (None, "") and str(patient_id) != str(requesting_user.pk):
                raise PermissionDenied("Patients can only open cases for themselves.")
            return requesting_user
        if role == UserRole.ADMIN:
            if patient_id in (None, ""):
                raise ValidationError("Patient ID is required.")
            patient = UserDirectoryService.find_user_by_id(patient_id)
            if patient is None or not patient.is_patient:
                raise ValidationError("Invalid patient ID.")
            return patient
        raise PermissionDenied("Only patients and admins can create cases.")

    @staticmethod
    @transaction.atomic
    def create_case(validated_data: dict[str, Any], requesting_user: Any) -> CaseOutcome:
        """
        Create a case and try to assign it.

        Parameters
        ----------
        validated_data : dict
            ``issue_details`` and ``city`` are required.  Optional:
            ``patient_id`` (admins), ``can_travel``, ``preferred_gender``,
            ``physiotherapist_id`` (explicit choice).
        requesting_user : User
            A patient (for themselves) or an admin.

        Returns
        -------
        CaseOutcome
            The new case (``in_progress`` when matched, else ``open``)
            and an optional warning.

        Raises
        ------
        ValidationError, PermissionDenied, InvalidPhysiotherapist, CityMismatch
        """
        issue_details = (validated_data.get("issue_details") or "").strip()
        city = (validated_data.get("city") or "").strip()
        if not issue_details or not city:
            raise ValidationError("Issue details and city are required.")

        patient = CaseCreationService._resolve_patient(
            validated_data.get("patient_id"), requesting_user,
        )

        preferred_gender = normalize_gender_preference(validated_data.get("preferred_gender"))
        stored_gender = preferred_gender or (
            GenderPreference.NO_PREFERENCE if validated_data.get("preferred_gender") else ""
        )

        decision = CaseAssignmentService.choose_physiotherapist(
            city,
            preferred_physiotherapist_id=validated_data.get("physiotherapist_id"),
            preferred_gender=preferred_gender,
        )
        physio = decision.physiotherapist
        status = CaseStatus.IN_PROGRESS if physio is not None else CaseStatus.OPEN

        case = Case.objects.create(
            patient=patient,
            physiotherapist=physio,
            issue_details=issue_details,
            city=city,
            can_travel=bool(validated_data.get("can_travel", False)),
            preferred_gender=stored_gender,
            status=status,
        )
        _log_status(
            case,
            "",
            status,
            requesting_user,
            message=(
                f"Created and assigned to {physio.display_name}."
                if physio is not None else "Created."
            ),
        )
        logger.info(
            "Case #%s created for patient id=%s in %s with status %s",
            case.pk, patient.pk, city, status,
        )
        return CaseOutcome(case=case, warning=decision.warning)


# ═══════════════════════════════════════════════════════════════════
#  Case Workflow Service
# ═══════════════════════════════════════════════════════════════════


class CaseWorkflowService:
    """
    Manages status transitions after creation.

    ``transition_state`` is the validated gateway through the state
    machine defined by ``ALLOWED_TRANSITIONS``: it locks the row, checks
    the source status, runs the role and participant guards against the
    locked state, applies the change and writes a ``CaseStatusLog`` row.
    """

    @staticmethod
    @transaction.atomic
    def transition_state(
        case: Case,
        target_status: str,
        requesting_user: Any,
        *,
        message: str = "",
        reason: str | None = None,
        changes: dict[str, Any] | None = None,
        participant_check: Callable[[Case, Any], None] | None = None,
    ) -> Case:
        """
        Move ``case`` to ``target_status``.

        Raises
        ------
        InvalidTransition
            The current status has no edge to ``target_status``.
        PermissionDenied
            The caller's role is not allowed on this edge, or
            ``participant_check`` rejects them.
        """
        captured: dict[str, str] = {}

        def guard(locked: Case) -> None:
            captured["from"] = locked.status
            allowed_roles = ALLOWED_TRANSITIONS.get((locked.status, target_status), set())
            if get_user_role(requesting_user) not in allowed_roles:
                raise PermissionDenied(
                    f"Your role cannot move a case from '{locked.status}' to '{target_status}'."
                )
            if participant_check is not None:
                participant_check(locked, requesting_user)

        updated = atomic_transition(
            instance=case,
            target_status=target_status,
            allowed_sources=_sources_for(target_status),
            changes=changes,
            reason=reason,
            on_locked=guard,
        )
        _log_status(updated, captured["from"], target_status, requesting_user, message=message)
        logger.info(
            "Case #%s moved %s → %s by user id=%s",
            updated.pk, captured["from"], target_status, getattr(requesting_user, "pk", None),
        )
        return updated

    @staticmethod
    def request_closure(case: Case, requesting_user: Any) -> Case:
        """
        Ask for the case to be closed (``open``/``in_progress`` →
        ``pending_closure``).  Only the assigned physiotherapist or an
        admin may do this.
        """

        def assigned_physio_or_admin(locked: Case, user: Any) -> None:
            if get_user_role(user) == UserRole.ADMIN:
                return
            if locked.physiotherapist_id is None or locked.physiotherapist_id != user.pk:
                raise PermissionDenied(
                    "Only the assigned physiotherapist or an admin can request closure."
                )

        return CaseWorkflowService.transition_state(
            case,
            CaseStatus.PENDING_CLOSURE,
            requesting_user,
            message="Closure requested.",
            reason="Closure can only be requested for open or in-progress cases.",
            changes={
                "closure_requested_by": requesting_user,
                "closure_requested_at": timezone.now(),
            },
            participant_check=assigned_physio_or_admin,
        )

    @staticmethod
    def validate_review(review: Any) -> tuple[int, str]:
        """
        Return ``(rating, comment)`` from a review payload.

        Raises
        ------
        ValidationError
            Missing review, rating not an integer in the allowed range,
            or blank comment.
        """
        if not isinstance(review, dict):
            raise ValidationError("Review with rating and comment is required.")
        rating = review.get("rating")
        comment = review.get("comment")
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError("Review rating must be an integer.")
        if not REVIEW_RATING_MIN <= rating <= REVIEW_RATING_MAX:
            raise ValidationError(
                f"Review rating must be between {REVIEW_RATING_MIN} and {REVIEW_RATING_MAX}."
            )
        if not isinstance(comment, str) or not comment.strip():
            raise ValidationError("Review comment is required.")
        return rating, comment.strip()

    @staticmethod
    def close_case(case: Case, review: Any, requesting_user: Any) -> Case:
        """
        Close a ``pending_closure`` case with the patient's review.

        The review is validated before the status is looked at, so a
        malformed review is always reported as ``ValidationError``.
        """
        rating, comment = CaseWorkflowService.validate_review(review)

        def patient_or_admin(locked: Case, user: Any) -> None:
            if get_user_role(user) == UserRole.ADMIN:
                return
            if locked.patient_id != user.pk:
                raise PermissionDenied("Only the case's patient or an admin can close it.")

        return CaseWorkflowService.transition_state(
            case,
            CaseStatus.CLOSED,
            requesting_user,
            message=f"Closed with rating {rating}.",
            reason="Case closure has not been requested.",
            changes={"review_rating": rating, "review_comment": comment},
            participant_check=patient_or_admin,
        )


# ═══════════════════════════════════════════════════════════════════
#  Case Comment Service
# ═══════════════════════════════════════════════════════════════════


class CaseCommentService:
    """
    Append-only discussion thread on a case.

    Each insert happens under the case row lock and its timestamp is
    clamped to be no earlier than the previous comment's, so the thread
    order is stable even if the clock steps back.
    """

    @staticmethod
    def list_comments(case_id: Any, requesting_user: Any) -> QuerySet:
        case = CaseQueryService.get_case_detail(requesting_user, case_id)
        return case.comments.order_by("timestamp", "id")

    @staticmethod
    def _check_participant(case: Case, user: Any) -> None:
        role = get_user_role(user)
        if role == UserRole.ADMIN:
            return
        if role == UserRole.PATIENT and case.patient_id == user.pk:
            return
        if role == UserRole.PHYSIOTHERAPIST and case.physiotherapist_id == user.pk:
            return
        raise PermissionDenied(
            "Only the case's patient, its physiotherapist or an admin can comment."
        )

    @staticmethod
    @transaction.atomic
    def add_comment(case: Case, message: str, requesting_user: Any) -> CaseComment:
        """
        Append a comment to ``case``.

        Raises
        ------
        ValidationError
            Blank message.
        InvalidTransition
            The case is closed.
        PermissionDenied
            The caller is not a participant of the case.
        """
        text = (message or "").strip()
        if not text:
            raise ValidationError("Comment message is required.")

        locked = lock_for_update(Case, case.pk)
        if locked.status == CaseStatus.CLOSED:
            raise InvalidTransition(
                "Comments cannot be added to a closed case.",
                current=locked.status,
            )
        CaseCommentService._check_participant(locked, requesting_user)

        now = timezone.now()
        last = (
            CaseComment.objects
            .filter(case=locked)
            .order_by("-timestamp", "-id")
            .values_list("timestamp", flat=True)
            .first()
        )
        timestamp = max(now, last) if last is not None else now

        comment = CaseComment.objects.create(
            case=locked,
            author=requesting_user,
            author_name=requesting_user.display_name,
            author_role=get_user_role(requesting_user) or "",
            message=text,
            timestamp=timestamp,
        )
        Case.objects.filter(pk=locked.pk).update(updated_at=now)
        logger.info("Comment #%s added to case #%s by user id=%s", comment.pk, locked.pk, requesting_user.pk)
        return comment
