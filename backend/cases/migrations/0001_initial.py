import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


STATUS_CHOICES = [
    ("open", "Open"),
    ("in_progress", "In Progress"),
    ("pending_closure", "Pending Closure"),
    ("closed", "Closed"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("issue_details", models.TextField(verbose_name="Issue Details")),
                ("city", models.CharField(db_index=True, max_length=100, verbose_name="City")),
                ("can_travel", models.BooleanField(default=False, verbose_name="Patient Can Travel")),
                ("preferred_gender", models.CharField(blank=True, choices=[("male", "Male"), ("female", "Female"), ("other", "Other"), ("no-preference", "No Preference")], default="", max_length=20, verbose_name="Preferred Physiotherapist Gender")),
                ("status", models.CharField(choices=STATUS_CHOICES, db_index=True, default="open", max_length=20, verbose_name="Status")),
                ("closure_requested_at", models.DateTimeField(blank=True, null=True, verbose_name="Closure Requested At")),
                ("review_rating", models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)], verbose_name="Review Rating")),
                ("review_comment", models.TextField(blank=True, default="", verbose_name="Review Comment")),
                ("closure_requested_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="closure_requests", to=settings.AUTH_USER_MODEL, verbose_name="Closure Requested By")),
                ("patient", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="patient_cases", to=settings.AUTH_USER_MODEL, verbose_name="Patient")),
                ("physiotherapist", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="physiotherapist_cases", to=settings.AUTH_USER_MODEL, verbose_name="Assigned Physiotherapist")),
            ],
            options={
                "verbose_name": "Case",
                "verbose_name_plural": "Cases",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["patient"], name="cases_case_patient_7f3c2a_idx"),
                    models.Index(fields=["physiotherapist"], name="cases_case_physiot_5b1e9d_idx"),
                    models.Index(fields=["status", "created_at"], name="cases_case_status_2c8a41_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="CaseComment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("author_name", models.CharField(max_length=150, verbose_name="Author Name")),
                ("author_role", models.CharField(max_length=20, verbose_name="Author Role")),
                ("message", models.TextField(verbose_name="Message")),
                ("timestamp", models.DateTimeField(verbose_name="Timestamp")),
                ("author", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="case_comments", to=settings.AUTH_USER_MODEL, verbose_name="Author")),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="comments", to="cases.case", verbose_name="Case")),
            ],
            options={
                "verbose_name": "Case Comment",
                "verbose_name_plural": "Case Comments",
                "ordering": ["timestamp", "id"],
            },
        ),
        migrations.CreateModel(
            name="CaseStatusLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Created At")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="Updated At")),
                ("from_status", models.CharField(blank=True, choices=STATUS_CHOICES, default="", max_length=20, verbose_name="Previous Status")),
                ("to_status", models.CharField(choices=STATUS_CHOICES, max_length=20, verbose_name="New Status")),
                ("message", models.TextField(blank=True, default="", verbose_name="Message")),
                ("case", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="status_logs", to="cases.case", verbose_name="Case")),
                ("changed_by", models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="case_status_changes", to=settings.AUTH_USER_MODEL, verbose_name="Changed By")),
            ],
            options={
                "verbose_name": "Case Status Log",
                "verbose_name_plural": "Case Status Logs",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
