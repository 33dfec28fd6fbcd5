from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.db.models import F
from django.urls import reverse
from django.utils.html import format_html

from .exceptions import Conflict
from .forms import CustomUserCreationForm, TaskAdminForm
from .models import Category, CustomUser, Task

TASK_COLUMNS = (
    "name",
    "description",
    "assigned_date",
    "submission_date",
    "status",
    "assigned_person_id",
    "category_id",
)


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin):
    add_form = CustomUserCreationForm
    list_display = ("email", "name", "designation", "department", "role", "is_staff")
    list_filter = ("role", "department", "designation", "is_staff", "is_active")
    search_fields = ("email", "name")
    ordering = ("name",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Personal Info", {"fields": ("name", "designation", "department")}),
        ("Role Info", {"fields": ("role",)}),
        ("Permissions", {"fields": ("is_active", "is_staff", "is_superuser", "groups", "user_permissions")}),
        ("Important dates", {"fields": ("last_login", "date_joined")}),
    )

    add_fieldsets = (
        (None, {
            "classes": ("wide",),
            "fields": ("email", "name", "designation", "department", "role", "password1", "password2")}
        ),
    )

    def has_delete_permission(self, request, obj=None):
        # Users are never deleted; their tasks would be orphaned.
        return False


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "description", "task_count")
    search_fields = ("name",)

    def task_count(self, obj):
        return obj.tasks.count()
    task_count.short_description = "Tasks"


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    form = TaskAdminForm
    list_display = ("name", "assigned_person", "category", "assigned_date", "submission_date", "status", "action_buttons")
    list_filter = ("status", "category", "assigned_date")
    search_fields = ("name", "description", "assigned_person__name", "assigned_person__email")
    date_hierarchy = "assigned_date"
    list_per_page = 20
    list_select_related = ("assigned_person", "category")

    readonly_fields = ("version",)

    fieldsets = (
        ("Task Information", {
            "fields": ("name", "description", "category")
        }),
        ("Assignment Details", {
            "fields": ("assigned_person", "status", "assigned_date", "submission_date", "version", "loaded_version")
        }),
    )

    raw_id_fields = ("assigned_person",)

    def action_buttons(self, obj):
        return format_html(
            '<a class="button" href="{}">Edit</a>&nbsp;'
            '<a class="button" style="color: red;" href="{}">Delete</a>',
            reverse("admin:tasks_task_change", args=[obj.pk]),
            reverse("admin:tasks_task_delete", args=[obj.pk]),
        )
    action_buttons.short_description = "Actions"

    def save_model(self, request, obj, form, change):
        if not change:
            super().save_model(request, obj, form, change)
            return
        expected = form.cleaned_data.get("loaded_version") or obj.version
        values = {field: getattr(obj, field) for field in TASK_COLUMNS}
        updated = Task.objects.filter(pk=obj.pk, version=expected).update(
            version=F("version") + 1, **values
        )
        if not updated:
            raise Conflict(obj.pk)
        obj.version = expected + 1
