"""Admin configuration for incident models."""

from django.contrib import admin
from django.utils.html import format_html
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.alerts.models import ChangeStatus, Incident, IncidentChange, TimelineEntry
from apps.alerts.store import IncidentStore
from config.admin import prettify_json

SEVERITY_COLORS = {
    "critical": "#dc3545",
    "warning": "#ffc107",
    "info": "#17a2b8",
}

STATE_COLORS = {
    "triggered": "#dc3545",
    "acked": "#ffc107",
    "resolved": "#28a745",
}


def _badge(color: str, text: str):
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 8px; '
        'border-radius: 3px; font-size: 11px;">{}</span>',
        color,
        text.upper(),
    )


def _admin_actor(request) -> str:
    return f"admin:{request.user.get_username()}"


class TimelineEntryInline(admin.TabularInline):
    """Read-only timeline of an incident."""

    model = TimelineEntry
    extra = 0
    fields = ["sequence", "timestamp", "event", "actor", "note"]
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Incident)
class IncidentAdmin(DjangoObjectActions, admin.ModelAdmin):
    """
    Admin for Incident model.

    Fields are read-only; state changes go through the store so they get the
    same conditional-write, timeline and change-feed treatment as API calls.
    """

    list_display = [
        "alarm_name",
        "severity_badge",
        "state_badge",
        "team",
        "assigned_to",
        "is_game",
        "triggered_at",
        "resolved_at",
    ]
    list_filter = ["state", "severity", "is_game", "team"]
    search_fields = ["alarm_name", "alarm_ref", "assigned_to", "acked_by"]
    date_hierarchy = "triggered_at"
    inlines = [TimelineEntryInline]
    actions = ["acknowledge_selected", "resolve_selected"]
    change_actions = ["acknowledge_incident", "unacknowledge_incident", "resolve_incident"]

    fieldsets = [
        (
            None,
            {
                "fields": ["alarm_name", "alarm_ref", "team", "severity", "state"],
            },
        ),
        (
            "Assignment",
            {
                "fields": ["assigned_to", "acked_by", "acked_by_name", "escalation_level"],
            },
        ),
        (
            "Game",
            {
                "fields": ["is_game", "triggered_by", "triggered_by_name", "point_multiplier"],
                "classes": ["collapse"],
            },
        ),
        (
            "Timestamps",
            {
                "fields": [
                    "triggered_at",
                    "acked_at",
                    "resolved_at",
                    "last_event_at",
                    "expires_at",
                    "version",
                ],
            },
        ),
    ]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("team")

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def delete_queryset(self, request, queryset):
        IncidentStore().delete(queryset)

    def delete_model(self, request, obj):
        IncidentStore().delete([obj])

    @admin.action(description="Acknowledge selected incidents")
    def acknowledge_selected(self, request, queryset):
        store = IncidentStore()
        count = sum(1 for i in queryset if store.ack(i.pk, _admin_actor(request)).ok)
        self.message_user(request, f"{count} incident(s) acknowledged.")

    @admin.action(description="Resolve selected incidents")
    def resolve_selected(self, request, queryset):
        store = IncidentStore()
        count = sum(1 for i in queryset if store.resolve(i.pk, _admin_actor(request)).ok)
        self.message_user(request, f"{count} incident(s) resolved.")

    @object_action(label="Acknowledge", description="Mark this incident as acknowledged")
    def acknowledge_incident(self, request, obj):
        result = IncidentStore().ack(obj.pk, _admin_actor(request))
        if result.ok:
            self.message_user(request, f"Incident '{obj.alarm_name}' acknowledged.")
        else:
            self.message_user(request, result.error, level="warning")

    @object_action(label="Unacknowledge", description="Put this incident back to triggered")
    def unacknowledge_incident(self, request, obj):
        result = IncidentStore().unack(obj.pk, _admin_actor(request))
        if result.ok:
            self.message_user(request, f"Incident '{obj.alarm_name}' unacknowledged.")
        else:
            self.message_user(request, result.error, level="warning")

    @object_action(label="Resolve", description="Mark this incident as resolved")
    def resolve_incident(self, request, obj):
        result = IncidentStore().resolve(obj.pk, _admin_actor(request), note="Resolved from admin")
        if result.ok:
            self.message_user(request, f"Incident '{obj.alarm_name}' resolved.")
        else:
            self.message_user(request, result.error, level="warning")

    @admin.display(description="Severity")
    def severity_badge(self, obj):
        return _badge(SEVERITY_COLORS.get(obj.severity, "#6c757d"), obj.severity)

    @admin.display(description="State")
    def state_badge(self, obj):
        return _badge(STATE_COLORS.get(obj.state, "#6c757d"), obj.state)


@admin.register(IncidentChange)
class IncidentChangeAdmin(admin.ModelAdmin):
    """Admin for the incident change log."""

    list_display = [
        "incident_id",
        "sequence",
        "change_type",
        "transition",
        "status",
        "attempts",
        "committed_at",
        "processed_at",
    ]
    list_filter = ["status", "change_type"]
    search_fields = ["incident_id"]
    date_hierarchy = "committed_at"
    readonly_fields = [
        "incident_id",
        "sequence",
        "change_type",
        "status",
        "attempts",
        "committed_at",
        "claimed_at",
        "processed_at",
        "pretty_before",
        "pretty_after",
    ]
    exclude = ["before", "after"]
    actions = ["requeue_selected"]

    def has_add_permission(self, request):
        """Change rows are written by the store only."""
        return False

    def has_change_permission(self, request, obj=None):
        return False

    @admin.action(description="Requeue selected changes for notification")
    def requeue_selected(self, request, queryset):
        from apps.notify.tasks import process_incident_change

        pending = queryset.exclude(status=ChangeStatus.DONE)
        for change in pending:
            process_incident_change.delay(change.pk)
        self.message_user(request, f"{pending.count()} change(s) requeued.")

    @admin.display(description="Transition")
    def transition(self, obj):
        return f"{obj.before_state or '-'} -> {obj.after_state or '-'}"

    @admin.display(description="Before")
    def pretty_before(self, obj):
        return prettify_json(obj.before)

    @admin.display(description="After")
    def pretty_after(self, obj):
        return prettify_json(obj.after)
