"""Admin configuration for notify models."""

from django.contrib import admin
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.notify.drivers import PushNotification
from apps.notify.models import Device, NotificationRecord
from apps.notify.services import PushDispatcher


@admin.register(Device)
class DeviceAdmin(DjangoObjectActions, admin.ModelAdmin):
    """Admin for Device model."""

    list_display = ["user_id", "platform", "short_token", "created_at", "updated_at"]
    list_filter = ["platform"]
    search_fields = ["user_id", "token"]
    readonly_fields = ["created_at", "updated_at"]
    change_actions = ["send_test_push"]

    fieldsets = [
        (
            None,
            {
                "fields": ["user_id", "platform", "token"],
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

    @admin.display(description="Token")
    def short_token(self, obj):
        return f"{obj.token[:16]}..."

    @object_action(label="Send test push", description="Push a test notification to this device")
    def send_test_push(self, request, obj):
        notification = PushNotification(
            title="Test notification",
            body="Push delivery is working",
            data={"kind": "test"},
        )
        outcome = PushDispatcher().send_to_device(obj, notification)
        if outcome.get("success"):
            self.message_user(request, "Test push sent.")
        else:
            self.message_user(request, f"Test push failed: {outcome.get('error')}", level="warning")


@admin.register(NotificationRecord)
class NotificationRecordAdmin(admin.ModelAdmin):
    """Admin for the notification dedupe ledger."""

    list_display = [
        "kind",
        "recipient",
        "incident_id",
        "badge",
        "devices_attempted",
        "devices_succeeded",
        "created_at",
    ]
    list_filter = ["kind"]
    search_fields = ["recipient", "incident_id", "dedupe_key"]
    date_hierarchy = "created_at"
    readonly_fields = [f for f in list_display] + ["dedupe_key", "change_id"]

    def has_add_permission(self, request):
        """Records are written by the notifier only."""
        return False

    def has_change_permission(self, request, obj=None):
        return False
