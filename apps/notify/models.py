"""
Push delivery models.

Device registrations are keyed by (responder, token). NotificationRecord is the
dedupe ledger of the change notifier: one row per notified state transition.
"""

from django.db import models


class DevicePlatform(models.TextChoices):
    """Push platforms a device can register for."""

    IOS = "ios", "iOS"
    ANDROID = "android", "Android"
    WEB = "web", "Web"


class Device(models.Model):
    """A responder's registered push target."""

    user_id = models.CharField(max_length=255, db_index=True)
    token = models.CharField(max_length=512, db_index=True)
    platform = models.CharField(max_length=20, choices=DevicePlatform.choices)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["user_id", "created_at"]
        constraints = [
            models.UniqueConstraint(fields=["user_id", "token"], name="unique_user_device"),
        ]

    def __str__(self):
        return f"{self.user_id} [{self.platform}] {self.token[:12]}..."

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "device_token": self.token,
            "platform": self.platform,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class NotificationKind(models.TextChoices):
    """Kinds of push the change notifier sends."""

    NEW_INCIDENT = "new_incident", "New incident"
    ACKNOWLEDGED = "acknowledged", "Acknowledged"
    RESOLVED = "resolved", "Resolved"
    UNACKNOWLEDGED = "unacknowledged", "Unacknowledged"


class NotificationRecord(models.Model):
    """
    One notified state transition.

    The dedupe key is (incident id, before state, after state, change time), so
    a redelivered change event finds its record and is not pushed twice.
    """

    dedupe_key = models.CharField(max_length=255, unique=True)
    incident_id = models.UUIDField(db_index=True)
    change_id = models.BigIntegerField(null=True, blank=True)
    kind = models.CharField(max_length=20, choices=NotificationKind.choices)
    recipient = models.CharField(max_length=255)
    badge = models.PositiveIntegerField(default=0)
    devices_attempted = models.PositiveIntegerField(default=0)
    devices_succeeded = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.kind} -> {self.recipient} ({self.devices_succeeded}/{self.devices_attempted})"
