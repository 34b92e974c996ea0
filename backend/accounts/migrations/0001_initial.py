import django.contrib.auth.models
import django.contrib.auth.validators
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("auth", "0012_alter_user_first_name_max_length"),
    ]

    operations = [
        migrations.CreateModel(
            name="City",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=100, unique=True, verbose_name="City Name")),
            ],
            options={
                "verbose_name": "City",
                "verbose_name_plural": "Cities",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="User",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("password", models.CharField(max_length=128, verbose_name="password")),
                ("last_login", models.DateTimeField(blank=True, null=True, verbose_name="last login")),
                ("is_superuser", models.BooleanField(default=False, help_text="Designates that this user has all permissions without explicitly assigning them.", verbose_name="superuser status")),
                ("username", models.CharField(error_messages={"unique": "A user with that username already exists."}, help_text="Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.", max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name="username")),
                ("first_name", models.CharField(blank=True, max_length=150, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=150, verbose_name="last name")),
                ("is_staff", models.BooleanField(default=False, help_text="Designates whether the user can log into this admin site.", verbose_name="staff status")),
                ("is_active", models.BooleanField(default=True, help_text="Designates whether this user should be treated as active. Unselect this instead of deleting accounts.", verbose_name="active")),
                ("date_joined", models.DateTimeField(default=django.utils.timezone.now, verbose_name="date joined")),
                ("name", models.CharField(max_length=150, verbose_name="Display Name")),
                ("email", models.EmailField(max_length=254, unique=True, verbose_name="Email Address")),
                ("role", models.CharField(choices=[("admin", "Admin"), ("physiotherapist", "Physiotherapist"), ("patient", "Patient")], db_index=True, default="patient", max_length=20, verbose_name="Role")),
                ("mobile_number", models.CharField(blank=True, default="", max_length=20, verbose_name="Mobile Number")),
                ("gender", models.CharField(blank=True, choices=[("male", "Male"), ("female", "Female"), ("other", "Other")], default="", max_length=10, verbose_name="Gender")),
                ("dob", models.DateField(blank=True, null=True, verbose_name="Date of Birth")),
                ("practicing_since", models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Practicing Since (Year)")),
                ("degrees", models.JSONField(blank=True, default=list, verbose_name="Degrees")),
                ("specialities", models.JSONField(blank=True, default=list, verbose_name="Specialities")),
                ("clinic_addresses", models.JSONField(blank=True, default=list, verbose_name="Clinic Addresses")),
                ("age", models.PositiveSmallIntegerField(blank=True, null=True, verbose_name="Age")),
                ("city", models.CharField(blank=True, default="", max_length=100, verbose_name="City")),
                ("cities_available", models.ManyToManyField(blank=True, related_name="physiotherapists", to="accounts.city", verbose_name="Cities Served")),
                ("groups", models.ManyToManyField(blank=True, help_text="The groups this user belongs to. A user will get all permissions granted to each of their groups.", related_name="user_set", related_query_name="user", to="auth.group", verbose_name="groups")),
                ("user_permissions", models.ManyToManyField(blank=True, help_text="Specific permissions for this user.", related_name="user_set", related_query_name="user", to="auth.permission", verbose_name="user permissions")),
            ],
            options={
                "verbose_name": "User",
                "verbose_name_plural": "Users",
            },
            managers=[
                ("objects", django.contrib.auth.models.UserManager()),
            ],
        ),
    ]
