"""
Accounts app models.

Defines the custom ``User`` model (extending Django's ``AbstractUser``)
shared by patients, physiotherapists and administrators, plus the
``City`` table used for physiotherapist coverage.

Role is a fixed enumeration stored on the user.  Authorization in the
service layers is derived from this value on the *authenticated* user,
never from anything the client sends.
"""

from django.contrib.auth.models import AbstractUser
from django.db import models


class UserRole(models.TextChoices):
    ADMIN = "admin", "Admin"
    PHYSIOTHERAPIST = "physiotherapist", "Physiotherapist"
    PATIENT = "patient", "Patient"


class Gender(models.TextChoices):
    MALE = "male", "Male"
    FEMALE = "female", "Female"
    OTHER = "other", "Other"


class City(models.Model):
    """
    A city a physiotherapist can serve.

    Names are matched exactly (case-sensitive) against ``Case.city``.
    """

    name = models.CharField(
        max_length=100,
        unique=True,
        verbose_name="City Name",
    )

    class Meta:
        verbose_name = "City"
        verbose_name_plural = "Cities"
        ordering = ["name"]

    def __str__(self):
        return self.name


class User(AbstractUser):
    """
    Custom user model for PhysioCare.

    Registration requires ``name``, ``email``, ``password`` and ``role``
    plus the role-specific profile fields:

    * **Physiotherapist**: ``dob``, ``practicing_since``, ``degrees``,
      ``specialities``, ``cities_available``, ``clinic_addresses``,
      ``mobile_number``, ``gender``.
    * **Patient**: ``age``, ``city``, ``mobile_number``, ``gender``.

    ``username`` is kept for Django admin compatibility and is set to the
    e-mail address on registration.  Login accepts either.
    """

    name = models.CharField(
        max_length=150,
        verbose_name="Display Name",
    )
    email = models.EmailField(
        unique=True,
        verbose_name="Email Address",
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.PATIENT,
        db_index=True,
        verbose_name="Role",
    )
    mobile_number = models.CharField(
        max_length=20,
        blank=True,
        default="",
        verbose_name="Mobile Number",
    )
    gender = models.CharField(
        max_length=10,
        choices=Gender.choices,
        blank=True,
        default="",
        verbose_name="Gender",
    )

    # ── Physiotherapist profile ──────────────────────────────────────
    cities_available = models.ManyToManyField(
        City,
        blank=True,
        related_name="physiotherapists",
        verbose_name="Cities Served",
    )
    dob = models.DateField(
        null=True,
        blank=True,
        verbose_name="Date of Birth",
    )
    practicing_since = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Practicing Since (Year)",
    )
    degrees = models.JSONField(default=list, blank=True, verbose_name="Degrees")
    specialities = models.JSONField(default=list, blank=True, verbose_name="Specialities")
    clinic_addresses = models.JSONField(default=list, blank=True, verbose_name="Clinic Addresses")

    # ── Patient profile ──────────────────────────────────────────────
    age = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        verbose_name="Age",
    )
    city = models.CharField(
        max_length=100,
        blank=True,
        default="",
        verbose_name="City",
    )

    # Fields required when creating a superuser via CLI
    REQUIRED_FIELDS = ["email", "name"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"

    def __str__(self):
        return f"{self.display_name} <{self.email}> - {self.role}"

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.strip().lower()
        super().save(*args, **kwargs)

    # ── Helper predicates for role checks ────────────────────────────

    @property
    def display_name(self) -> str:
        """Name shown next to comments and in listings."""
        return self.name or self.get_full_name() or self.username

    @property
    def is_physiotherapist(self) -> bool:
        return self.role == UserRole.PHYSIOTHERAPIST

    @property
    def is_patient(self) -> bool:
        return self.role == UserRole.PATIENT

    @property
    def city_names(self) -> list[str]:
        """Names of the cities this physiotherapist covers, sorted."""
        return sorted(c.name for c in self.cities_available.all())
