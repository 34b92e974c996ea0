from django.contrib import admin

from .models import Case, CaseComment, CaseStatusLog


class CaseCommentInline(admin.TabularInline):
    model = CaseComment
    extra = 0
    readonly_fields = ("author", "author_name", "author_role",
                       "message", "timestamp")


class CaseStatusLogInline(admin.TabularInline):
    model = CaseStatusLog
    extra = 0
    readonly_fields = ("from_status", "to_status", "changed_by",
                       "message", "created_at")


@admin.register(Case)
class CaseAdmin(admin.ModelAdmin):
    list_display = ("id", "patient", "physiotherapist", "city",
                    "status", "created_at")
    list_filter = ("status", "city", "preferred_gender")
    search_fields = ("issue_details", "city", "patient__email")
    raw_id_fields = ("patient", "physiotherapist", "closure_requested_by")
    inlines = [CaseCommentInline, CaseStatusLogInline]


@admin.register(CaseStatusLog)
class CaseStatusLogAdmin(admin.ModelAdmin):
    list_display = ("case", "from_status", "to_status",
                    "changed_by", "created_at")
    list_filter = ("to_status",)
