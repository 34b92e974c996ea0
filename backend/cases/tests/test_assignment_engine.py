"""
Unit and integration tests for the physiotherapist matching engine.

Covers:
  1. ``pick_least_loaded`` tie-breaking on plain objects
  2. Candidate discovery (exact city match, active caseload count)
  3. Creation-time matching, with and without gender preference
  4. Explicit physiotherapist validation (invalid or inactive user, city mismatch)
  5. Manual and automatic assignment guards
"""

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from accounts.models import UserRole
from cases.models import Case, CaseStatus, CaseStatusLog
from cases.services import (
    CaseAssignmentService,
    CaseCreationService,
    normalize_gender_preference,
    pick_least_loaded,
)
from core.domain.exceptions import (
    AlreadyAssigned,
    CityMismatch,
    InvalidPhysiotherapist,
    InvalidTransition,
    PermissionDenied,
    ValidationError,
)


def _load_cases(physio, patient, count: int, status: str = CaseStatus.IN_PROGRESS) -> None:
    for _ in range(count):
        Case.objects.create(
            patient=patient,
            physiotherapist=physio,
            issue_details="Existing treatment",
            city="Mumbai",
            status=status,
        )


# ════════════════════════════════════════════════════════════════════
#  Pure helpers
# ════════════════════════════════════════════════════════════════════

class TestPickLeastLoaded:

    def test_earliest_of_tied_minimum_wins(self):
        candidates = [SimpleNamespace(active_caseload=n) for n in [3, 1, 4, 1, 5]]
        assert pick_least_loaded(candidates) is candidates[1]

    def test_single_candidate(self):
        only = SimpleNamespace(active_caseload=9)
        assert pick_least_loaded([only]) is only

    def test_empty_returns_none(self):
        assert pick_least_loaded([]) is None

    def test_custom_caseload_function(self):
        loads = {"a": 2, "b": 0, "c": 0}
        assert pick_least_loaded(["a", "b", "c"], caseload=loads.__getitem__) == "b"


class TestNormalizeGenderPreference:

    @pytest.mark.parametrize("value", [None, "", "  ", "no-preference", "No_Preference", "ANY", "none"])
    def test_no_preference_values(self, value):
        assert normalize_gender_preference(value) is None

    def test_lower_cases(self):
        assert normalize_gender_preference(" Female ") == "female"


# ════════════════════════════════════════════════════════════════════
#  Matching against the database
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestDecide:

    def test_least_loaded_physiotherapist_chosen(self, create_user):
        patient = create_user()
        busy = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])
        free = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])
        _load_cases(busy, patient, 2)
        _load_cases(free, patient, 1)

        decision = CaseAssignmentService.decide("Mumbai")

        assert decision.physiotherapist == free
        assert decision.warning is None

    def test_closed_cases_do_not_count(self, create_user):
        patient = create_user()
        first = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])
        second = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])
        _load_cases(first, patient, 3, status=CaseStatus.CLOSED)
        _load_cases(second, patient, 1, status=CaseStatus.PENDING_CLOSURE)

        assert CaseAssignmentService.count_active_cases(first) == 0
        assert CaseAssignmentService.count_active_cases(second) == 1
        assert CaseAssignmentService.decide("Mumbai").physiotherapist == first

    def test_tie_goes_to_lowest_pk(self, create_user):
        first = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Delhi"])
        create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Delhi"])

        assert CaseAssignmentService.decide("Delhi").physiotherapist == first

    def test_caseload_counts_each_case_once(self, create_user):
        patient = create_user()
        multi_city = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai", "Pune", "Delhi"])
        single_city = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])
        _load_cases(multi_city, patient, 1)
        _load_cases(single_city, patient, 2)

        candidates = CaseAssignmentService.find_candidates("Mumbai")

        assert [c.active_caseload for c in candidates] == [1, 2]

    def test_lowest_caseload_wins_earliest_on_tie(self, create_user):
        patient = create_user()
        physios = [
            create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])
            for _ in range(5)
        ]
        for physio, load in zip(physios, [3, 1, 4, 1, 5]):
            _load_cases(physio, patient, load)

        decision = CaseAssignmentService.decide("Mumbai")

        assert decision.physiotherapist == physios[1]
        assert decision.physiotherapist.active_caseload == 1

    def test_gender_preference_ignores_case(self, create_user):
        create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Chennai"])
        female = create_user(role=UserRole.PHYSIOTHERAPIST, gender="Female", cities=["Chennai"])

        decision = CaseAssignmentService.decide("Chennai", "FEMALE")

        assert decision.physiotherapist == female
        assert decision.warning is None

    def test_inactive_physiotherapist_not_matched(self, create_user):
        create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Goa"], is_active=False)

        assert CaseAssignmentService.decide("Goa").physiotherapist is None

    def test_no_physiotherapist_in_city(self, create_user):
        create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])

        decision = CaseAssignmentService.decide("Pune")

        assert decision.physiotherapist is None
        assert decision.warning is None

    def test_gender_preference_honoured(self, create_user):
        patient = create_user()
        create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Chennai"])
        female = create_user(role=UserRole.PHYSIOTHERAPIST, gender="female", cities=["Chennai"])
        _load_cases(female, patient, 4)

        decision = CaseAssignmentService.decide("Chennai", "female")

        assert decision.physiotherapist == female

    def test_gender_preference_miss_leaves_unassigned(self, create_user):
        create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Chennai"])

        decision = CaseAssignmentService.decide("Chennai", "female")

        assert decision.physiotherapist is None
        assert decision.warning == (
            "No female physiotherapist is available in Chennai. "
            "The case has been left unassigned."
        )

    def test_explicit_choice_skips_matching(self, create_user):
        create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Chennai"])
        chosen = create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Chennai"])

        decision = CaseAssignmentService.choose_physiotherapist(
            "Chennai", preferred_physiotherapist_id=chosen.pk, preferred_gender="female",
        )

        assert decision.physiotherapist == chosen
        assert decision.warning is None

    def test_no_preference_matches_anyone(self, create_user):
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Chennai"])
        assert CaseAssignmentService.decide("Chennai", "no-preference").physiotherapist == physio


# ════════════════════════════════════════════════════════════════════
#  Creation-time matching
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestCreateCase:

    def test_matched_case_starts_in_progress(self, create_user, caplog):
        caplog.set_level(logging.INFO, logger="cases")
        patient = create_user()
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])

        outcome = CaseCreationService.create_case(
            {"issue_details": "Lower back pain", "city": "Mumbai"}, patient,
        )

        case = outcome.case
        assert case.status == CaseStatus.IN_PROGRESS
        assert case.physiotherapist == physio
        assert case.patient == patient
        assert outcome.warning is None
        log = CaseStatusLog.objects.get(case=case)
        assert (log.from_status, log.to_status) == ("", CaseStatus.IN_PROGRESS)
        assert f"Case #{case.pk} created" in caplog.text

    def test_city_without_physiotherapists_stays_open(self, create_user):
        patient = create_user()
        create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])

        outcome = CaseCreationService.create_case(
            {"issue_details": "Knee pain", "city": "Pune"}, patient,
        )

        assert outcome.case.status == CaseStatus.OPEN
        assert outcome.case.physiotherapist is None
        assert outcome.warning is None

    def test_gender_miss_returns_warning(self, create_user):
        patient = create_user()
        create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Mumbai"])

        outcome = CaseCreationService.create_case(
            {"issue_details": "Shoulder", "city": "Mumbai", "preferred_gender": "female"},
            patient,
        )

        assert outcome.case.status == CaseStatus.OPEN
        assert outcome.case.preferred_gender == "female"
        assert "No female physiotherapist" in outcome.warning

    def test_blank_issue_details_rejected(self, create_user):
        patient = create_user()

        with pytest.raises(ValidationError, match="Issue details and city are required."):
            CaseCreationService.create_case({"issue_details": "   ", "city": "Mumbai"}, patient)
        assert Case.objects.count() == 0

    def test_explicit_physiotherapist_assigned(self, create_user):
        patient = create_user()
        create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Delhi"])
        chosen = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Delhi"])
        _load_cases(chosen, patient, 5)

        outcome = CaseCreationService.create_case(
            {"issue_details": "Neck", "city": "Delhi", "physiotherapist_id": chosen.pk},
            patient,
        )

        assert outcome.case.physiotherapist == chosen
        assert outcome.case.status == CaseStatus.IN_PROGRESS

    def test_explicit_physiotherapist_city_mismatch(self, create_user):
        patient = create_user()
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Delhi", "Mumbai"])

        with pytest.raises(CityMismatch) as exc_info:
            CaseCreationService.create_case(
                {"issue_details": "Neck", "city": "Pune", "physiotherapist_id": physio.pk},
                patient,
            )

        assert str(exc_info.value) == (
            "Physiotherapist does not serve Pune. Available cities: Delhi, Mumbai"
        )
        assert Case.objects.count() == 0

    def test_explicit_non_physiotherapist_rejected(self, create_user):
        patient = create_user()
        other_patient = create_user()

        with pytest.raises(InvalidPhysiotherapist):
            CaseCreationService.create_case(
                {"issue_details": "Neck", "city": "Delhi", "physiotherapist_id": other_patient.pk},
                patient,
            )
        assert Case.objects.count() == 0

    def test_mixed_case_gender_preference(self, create_user):
        patient = create_user()
        create_user(role=UserRole.PHYSIOTHERAPIST, gender="male", cities=["Mumbai"])
        female = create_user(role=UserRole.PHYSIOTHERAPIST, gender="female", cities=["Mumbai"])

        outcome = CaseCreationService.create_case(
            {"issue_details": "Shoulder", "city": "Mumbai", "preferred_gender": "Female"},
            patient,
        )

        assert outcome.case.physiotherapist == female
        assert outcome.case.preferred_gender == "female"
        assert outcome.warning is None

    def test_explicit_inactive_physiotherapist_rejected(self, create_user):
        patient = create_user()
        inactive = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Delhi"], is_active=False)

        with pytest.raises(InvalidPhysiotherapist):
            CaseCreationService.create_case(
                {"issue_details": "Neck", "city": "Delhi", "physiotherapist_id": inactive.pk},
                patient,
            )
        assert Case.objects.count() == 0

    def test_admin_creates_for_patient(self, create_user):
        admin = create_user(role=UserRole.ADMIN)
        patient = create_user()

        outcome = CaseCreationService.create_case(
            {"issue_details": "Ankle", "city": "Kolkata", "patient_id": patient.pk}, admin,
        )

        assert outcome.case.patient == patient

    def test_admin_must_name_patient(self, create_user):
        admin = create_user(role=UserRole.ADMIN)

        with pytest.raises(ValidationError, match="Patient ID is required."):
            CaseCreationService.create_case({"issue_details": "Ankle", "city": "Kolkata"}, admin)

    def test_physiotherapist_cannot_create(self, create_user):
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Kolkata"])

        with pytest.raises(PermissionDenied):
            CaseCreationService.create_case({"issue_details": "Ankle", "city": "Kolkata"}, physio)

    def test_patient_cannot_create_for_someone_else(self, create_user):
        patient = create_user()
        other = create_user()

        with pytest.raises(PermissionDenied):
            CaseCreationService.create_case(
                {"issue_details": "Ankle", "city": "Kolkata", "patient_id": other.pk}, patient,
            )


# ════════════════════════════════════════════════════════════════════
#  Manual / automatic assignment
# ════════════════════════════════════════════════════════════════════

@pytest.mark.django_db
class TestAssignCase:

    @pytest.fixture()
    def open_case(self, create_user):
        patient = create_user()
        return CaseCreationService.create_case(
            {"issue_details": "Hip", "city": "Hyderabad"}, patient,
        ).case

    def test_physiotherapist_self_assigns(self, create_user, open_case):
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])

        case = CaseAssignmentService.assign_case(open_case, physio.pk, physio)

        assert case.physiotherapist == physio
        assert case.status == CaseStatus.IN_PROGRESS
        assert list(
            case.status_logs.values_list("from_status", "to_status")
        ) == [("", CaseStatus.OPEN), (CaseStatus.OPEN, CaseStatus.IN_PROGRESS)]

    def test_physiotherapist_cannot_assign_someone_else(self, create_user, open_case):
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])
        colleague = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])

        with pytest.raises(PermissionDenied):
            CaseAssignmentService.assign_case(open_case, colleague.pk, physio)

    def test_patient_cannot_assign(self, create_user, open_case):
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])

        with pytest.raises(PermissionDenied):
            CaseAssignmentService.assign_case(open_case, physio.pk, open_case.patient)

    def test_second_assignment_rejected(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)
        first = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])
        second = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])
        CaseAssignmentService.assign_case(open_case, first.pk, admin)

        with pytest.raises(AlreadyAssigned):
            CaseAssignmentService.assign_case(open_case, second.pk, admin)

        open_case.refresh_from_db()
        assert open_case.physiotherapist == first

    def test_stale_write_loses_to_earlier_assignment(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)
        winner = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])
        loser = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])
        stale = Case.objects.get(pk=open_case.pk)
        Case.objects.filter(pk=open_case.pk).update(
            physiotherapist=winner, status=CaseStatus.IN_PROGRESS,
        )

        with pytest.raises(AlreadyAssigned):
            CaseAssignmentService._write_assignment(stale, loser, admin)

        assert Case.objects.get(pk=open_case.pk).physiotherapist == winner

    def test_assignment_validates_city(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Mumbai"])

        with pytest.raises(CityMismatch):
            CaseAssignmentService.assign_case(open_case, physio.pk, admin)

    def test_inactive_physiotherapist_cannot_be_assigned(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)
        inactive = create_user(
            role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"], is_active=False,
        )

        with pytest.raises(InvalidPhysiotherapist):
            CaseAssignmentService.assign_case(open_case, inactive.pk, admin)

        open_case.refresh_from_db()
        assert open_case.physiotherapist is None
        assert open_case.status == CaseStatus.OPEN

    def test_pending_closure_case_cannot_be_assigned(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])
        Case.objects.filter(pk=open_case.pk).update(status=CaseStatus.PENDING_CLOSURE)

        with pytest.raises(InvalidTransition):
            CaseAssignmentService.assign_case(open_case, physio.pk, admin)

    def test_auto_assign_after_physiotherapist_joins(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])

        outcome = CaseAssignmentService.auto_assign(open_case, admin)

        assert outcome.case.physiotherapist == physio
        assert outcome.case.status == CaseStatus.IN_PROGRESS

    def test_auto_assign_without_candidates_leaves_case_open(self, create_user, open_case):
        admin = create_user(role=UserRole.ADMIN)

        outcome = CaseAssignmentService.auto_assign(open_case, admin)

        assert outcome.case.status == CaseStatus.OPEN
        assert outcome.case.physiotherapist is None

    def test_auto_assign_is_admin_only(self, create_user, open_case):
        physio = create_user(role=UserRole.PHYSIOTHERAPIST, cities=["Hyderabad"])

        with pytest.raises(PermissionDenied):
            CaseAssignmentService.auto_assign(open_case, physio)
