"""Admin configuration for team and schedule models."""

from django.contrib import admin
from django.db import models as db_models
from django.utils import timezone
from django_json_widget.widgets import JSONEditorWidget

from apps.teams.models import ScheduleSlot, Team, TeamAccount, TeamMembership


class TeamAccountInline(admin.TabularInline):
    model = TeamAccount
    extra = 0
    fields = ["account_id", "created_at"]
    readonly_fields = ["created_at"]


class TeamMembershipInline(admin.TabularInline):
    model = TeamMembership
    extra = 0
    fields = ["user_id", "created_at"]
    readonly_fields = ["created_at"]


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    """Admin for Team model."""

    list_display = ["name", "account_list", "member_count", "on_call_now", "created_at"]
    search_fields = ["name", "accounts__account_id", "memberships__user_id"]
    readonly_fields = ["id", "created_by", "created_at", "updated_at"]
    formfield_overrides = {db_models.JSONField: {"widget": JSONEditorWidget}}
    inlines = [TeamAccountInline, TeamMembershipInline]

    fieldsets = [
        (
            None,
            {
                "fields": ["id", "name", "created_by"],
            },
        ),
        (
            "Escalation policy",
            {
                "fields": ["escalation_policy"],
                "classes": ["collapse"],
            },
        ),
        (
            "Timestamps",
            {
                "fields": ["created_at", "updated_at"],
                "classes": ["collapse"],
            },
        ),
    ]

    def get_queryset(self, request):
        return super().get_queryset(request).prefetch_related("accounts", "memberships")

    @admin.display(description="Accounts")
    def account_list(self, obj):
        return ", ".join(a.account_id for a in obj.accounts.all()) or "-"

    @admin.display(description="Members")
    def member_count(self, obj):
        return len(obj.memberships.all())

    @admin.display(description="On call")
    def on_call_now(self, obj):
        from apps.teams.resolver import ResponderResolver

        return ResponderResolver().resolve_on_call(obj.id) or "-"


@admin.register(ScheduleSlot)
class ScheduleSlotAdmin(admin.ModelAdmin):
    """Admin for ScheduleSlot model."""

    list_display = ["team", "user_id", "start", "end", "is_current"]
    list_filter = ["team"]
    search_fields = ["user_id", "team__name"]
    date_hierarchy = "start"
    readonly_fields = ["created_at"]

    @admin.display(description="Current", boolean=True)
    def is_current(self, obj):
        return obj.covers(timezone.now())
