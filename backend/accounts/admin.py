from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import City, User


@admin.register(City)
class CityAdmin(admin.ModelAdmin):
    list_display = ("name",)
    search_fields = ("name",)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ("email", "name", "role", "gender", "city", "is_active")
    search_fields = ("email", "name", "mobile_number")
    list_filter = ("role", "gender", "is_active", "cities_available")
    filter_horizontal = ("groups", "user_permissions", "cities_available")
    fieldsets = BaseUserAdmin.fieldsets + (
        ("Profile", {"fields": ("name", "role", "mobile_number", "gender")}),
        ("Physiotherapist", {"fields": (
            "cities_available", "dob", "practicing_since",
            "degrees", "specialities", "clinic_addresses",
        )}),
        ("Patient", {"fields": ("age", "city")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Profile", {"fields": ("email", "name", "role")}),
    )
