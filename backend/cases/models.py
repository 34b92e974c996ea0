"""
Cases app models.

Covers the treatment-case lifecycle: a patient opens a case, it is
matched to a physiotherapist serving the patient's city, the
physiotherapist requests closure once treatment is done and the patient
closes it with a review.  Comments may be exchanged at any point before
closure.
"""

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.constants import REVIEW_RATING_MAX, REVIEW_RATING_MIN
from core.models import TimeStampedModel


# ────────────────────────────────────────────────────────────────────
# Choice enumerations
# ────────────────────────────────────────────────────────────────────

class CaseStatus(models.TextChoices):
    """
    Linear lifecycle.  Status only ever moves forward:

        open → in_progress → pending_closure → closed

    ``open`` may also go straight to ``pending_closure``.
    """

    OPEN = "open", "Open"
    IN_PROGRESS = "in_progress", "In Progress"
    PENDING_CLOSURE = "pending_closure", "Pending Closure"
    CLOSED = "closed", "Closed"


#: Statuses that count towards a physiotherapist's active caseload.
ACTIVE_STATUSES = (
    CaseStatus.OPEN,
    CaseStatus.IN_PROGRESS,
    CaseStatus.PENDING_CLOSURE,
)

#: Position of each status in the lifecycle, used for monotonicity checks.
STATUS_ORDER = {
    CaseStatus.OPEN: 0,
    CaseStatus.IN_PROGRESS: 1,
    CaseStatus.PENDING_CLOSURE: 2,
    CaseStatus.CLOSED: 3,
}


class GenderPreference(models.TextChoices):
    """Physiotherapist gender requested by the patient."""

    MALE = "male", "Male"
    FEMALE = "female", "Female"
    OTHER = "other", "Other"
    NO_PREFERENCE = "no-preference", "No Preference"


# ────────────────────────────────────────────────────────────────────
# Models
# ────────────────────────────────────────────────────────────────────

class Case(TimeStampedModel):
    """
    One treatment engagement between a patient and at most one
    physiotherapist.

    ``physiotherapist`` is written by a single assignment and never
    overwritten.  Cases are never hard-deleted.
    """

    patient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="patient_cases",
        verbose_name="Patient",
    )
    physiotherapist = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="physiotherapist_cases",
        verbose_name="Assigned Physiotherapist",
    )
    issue_details = models.TextField(
        verbose_name="Issue Details",
    )
    city = models.CharField(
        max_length=100,
        db_index=True,
        verbose_name="City",
    )
    can_travel = models.BooleanField(
        default=False,
        verbose_name="Patient Can Travel",
    )
    preferred_gender = models.CharField(
        max_length=20,
        choices=GenderPreference.choices,
        blank=True,
        default="",
        verbose_name="Preferred Physiotherapist Gender",
    )
    status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        default=CaseStatus.OPEN,
        db_index=True,
        verbose_name="Status",
    )

    # ── Closure request ──────────────────────────────────────────────
    closure_requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="closure_requests",
        verbose_name="Closure Requested By",
    )
    closure_requested_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name="Closure Requested At",
    )

    # ── Closing review ───────────────────────────────────────────────
    review_rating = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        validators=[
            MinValueValidator(REVIEW_RATING_MIN),
            MaxValueValidator(REVIEW_RATING_MAX),
        ],
        verbose_name="Review Rating",
    )
    review_comment = models.TextField(
        blank=True,
        default="",
        verbose_name="Review Comment",
    )

    class Meta:
        verbose_name = "Case"
        verbose_name_plural = "Cases"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["patient"], name="cases_case_patient_7f3c2a_idx"),
            models.Index(fields=["physiotherapist"], name="cases_case_physiot_5b1e9d_idx"),
            models.Index(fields=["status", "created_at"], name="cases_case_status_2c8a41_idx"),
        ]

    def __str__(self):
        return f"Case #{self.pk} ({self.city}) - {self.status}"

    @property
    def review(self) -> dict | None:
        """Closing review as ``{"rating", "comment"}``, or ``None``."""
        if self.review_rating is None:
            return None
        return {"rating": self.review_rating, "comment": self.review_comment}


class CaseComment(models.Model):
    """
    Append-only message on a case.

    Author name and role are captured at write time so the thread keeps
    reading correctly if the author's profile changes later.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="comments",
        verbose_name="Case",
    )
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="case_comments",
        verbose_name="Author",
    )
    author_name = models.CharField(max_length=150, verbose_name="Author Name")
    author_role = models.CharField(max_length=20, verbose_name="Author Role")
    message = models.TextField(verbose_name="Message")
    timestamp = models.DateTimeField(verbose_name="Timestamp")

    class Meta:
        verbose_name = "Case Comment"
        verbose_name_plural = "Case Comments"
        ordering = ["timestamp", "id"]

    def __str__(self):
        return f"Case #{self.case_id} comment by {self.author_name}"


class CaseStatusLog(TimeStampedModel):
    """
    Immutable audit trail of every status transition for a case.

    Stores the previous/new status, who made the change, and an optional
    message.  The initial status at creation is logged with an empty
    ``from_status``.
    """

    case = models.ForeignKey(
        Case,
        on_delete=models.CASCADE,
        related_name="status_logs",
        verbose_name="Case",
    )
    from_status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        blank=True,
        default="",
        verbose_name="Previous Status",
    )
    to_status = models.CharField(
        max_length=20,
        choices=CaseStatus.choices,
        verbose_name="New Status",
    )
    changed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        related_name="case_status_changes",
        verbose_name="Changed By",
    )
    message = models.TextField(
        blank=True,
        default="",
        verbose_name="Message",
    )

    class Meta:
        verbose_name = "Case Status Log"
        verbose_name_plural = "Case Status Logs"
        ordering = ["created_at", "id"]

    def __str__(self):
        return (
            f"Case #{self.case_id}: "
            f"{self.from_status or '-'} → {self.to_status}"
        )
