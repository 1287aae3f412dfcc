"""
Incident, timeline and change-log models.

An Incident is the persisted state machine (triggered -> acked -> resolved).
Its timeline lives in a separate append-only table keyed by (incident, sequence),
and every committed mutation is mirrored into IncidentChange, the change log the
notifier consumes.
"""

import uuid

from django.db import models
from django.utils import timezone

SYSTEM_ACTOR = "system"


class IncidentSeverity(models.TextChoices):
    """Severity levels for incidents."""

    CRITICAL = "critical", "Critical"
    WARNING = "warning", "Warning"
    INFO = "info", "Info"


class IncidentState(models.TextChoices):
    """State of an incident."""

    TRIGGERED = "triggered", "Triggered"
    ACKED = "acked", "Acknowledged"
    RESOLVED = "resolved", "Resolved"


ACTIVE_STATES = (IncidentState.TRIGGERED, IncidentState.ACKED)


class TimelineEvent(models.TextChoices):
    """Kinds of timeline entries."""

    TRIGGERED = "triggered", "Triggered"
    ACKED = "acked", "Acknowledged"
    RESOLVED = "resolved", "Resolved"
    ESCALATED = "escalated", "Escalated"
    REASSIGNED = "reassigned", "Reassigned"
    UNACKNOWLEDGED = "unacknowledged", "Unacknowledged"


class Incident(models.Model):
    """
    A tracked occurrence of a triggered alarm.

    Rows are only mutated through apps.alerts.store.IncidentStore, which applies
    every transition as a conditional update on (state, version).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team = models.ForeignKey(
        "teams.Team",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="incidents",
        help_text="Owning team (null for game incidents).",
    )

    # Source alarm
    alarm_name = models.CharField(max_length=255)
    alarm_ref = models.CharField(
        max_length=512,
        blank=True,
        default="",
        help_text="Stable external reference of the alarm (e.g. CloudWatch alarm ARN).",
    )

    # State machine
    state = models.CharField(
        max_length=20,
        choices=IncidentState.choices,
        default=IncidentState.TRIGGERED,
    )
    severity = models.CharField(
        max_length=20,
        choices=IncidentSeverity.choices,
        default=IncidentSeverity.WARNING,
    )
    assigned_to = models.CharField(max_length=255, blank=True, default="")
    acked_by = models.CharField(max_length=255, blank=True, default="")
    acked_by_name = models.CharField(max_length=255, blank=True, default="")
    escalation_level = models.PositiveSmallIntegerField(default=0)
    version = models.PositiveIntegerField(
        default=1,
        help_text="Incremented by every mutation; doubles as the timeline sequence.",
    )

    # Timestamps
    triggered_at = models.DateTimeField(default=timezone.now)
    acked_at = models.DateTimeField(null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True)
    last_event_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Records past this instant are purged by the expiry task.",
    )

    # Game mode
    is_game = models.BooleanField(default=False)
    triggered_by = models.CharField(max_length=255, blank=True, default="")
    triggered_by_name = models.CharField(max_length=255, blank=True, default="")
    point_multiplier = models.PositiveSmallIntegerField(default=1)

    class Meta:
        ordering = ["-triggered_at"]
        indexes = [
            models.Index(fields=["team", "state"]),
            models.Index(fields=["assigned_to", "state"]),
            models.Index(fields=["is_game", "state"]),
            models.Index(fields=["expires_at"]),
        ]

    def __str__(self):
        return f"[{self.state}] {self.alarm_name}"

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    @property
    def is_resolved(self) -> bool:
        return self.state == IncidentState.RESOLVED

    def to_dict(self, include_timeline: bool = True) -> dict:
        data = {
            "incident_id": str(self.id),
            "team_id": str(self.team_id) if self.team_id else None,
            "alarm_name": self.alarm_name,
            "alarm_arn": self.alarm_ref,
            "state": self.state,
            "severity": self.severity,
            "assigned_to": self.assigned_to,
            "acked_by": self.acked_by or None,
            "acked_by_name": self.acked_by_name or None,
            "escalation_level": self.escalation_level,
            "version": self.version,
            "triggered_at": self.triggered_at.isoformat(),
            "acked_at": self.acked_at.isoformat() if self.acked_at else None,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "game": self.is_game,
        }
        if self.is_game:
            data.update(
                {
                    "triggered_by": self.triggered_by,
                    "triggered_by_name": self.triggered_by_name,
                    "point_multiplier": self.point_multiplier,
                }
            )
        if include_timeline:
            data["timeline"] = [entry.to_dict() for entry in self.timeline.all()]
        return data


class TimelineEntry(models.Model):
    """
    Immutable record of something that happened to an incident.

    Entries are appended in the same transaction as the transition they
    describe and are never updated or deleted on their own.
    """

    incident = models.ForeignKey(Incident, on_delete=models.CASCADE, related_name="timeline")
    sequence = models.PositiveIntegerField()
    timestamp = models.DateTimeField()
    event = models.CharField(max_length=20, choices=TimelineEvent.choices)
    actor = models.CharField(max_length=255)
    note = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["sequence"]
        verbose_name_plural = "Timeline entries"
        constraints = [
            models.UniqueConstraint(
                fields=["incident", "sequence"], name="unique_timeline_sequence"
            ),
        ]

    def __str__(self):
        return f"{self.incident_id}#{self.sequence} {self.event} by {self.actor}"

    def to_dict(self) -> dict:
        data = {
            "timestamp": self.timestamp.isoformat(),
            "event": self.event,
            "actor": self.actor,
        }
        if self.note:
            data["note"] = self.note
        return data


class ChangeType(models.TextChoices):
    INSERT = "insert", "Insert"
    MODIFY = "modify", "Modify"
    REMOVE = "remove", "Remove"


class ChangeStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    DONE = "done", "Done"


class IncidentChange(models.Model):
    """
    One committed mutation of an incident, with before/after snapshots.

    Written in the same transaction as the mutation; sequence equals the
    incident version the mutation produced, so per-incident commit order is
    preserved. Not a foreign key: remove events outlive the incident row.
    """

    incident_id = models.UUIDField(db_index=True)
    sequence = models.PositiveIntegerField()
    change_type = models.CharField(max_length=10, choices=ChangeType.choices)
    before = models.JSONField(null=True, blank=True)
    after = models.JSONField(null=True, blank=True)
    committed_at = models.DateTimeField(default=timezone.now)

    # Processing state (claimed by one notifier worker at a time)
    status = models.CharField(
        max_length=20,
        choices=ChangeStatus.choices,
        default=ChangeStatus.PENDING,
    )
    claimed_at = models.DateTimeField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["incident_id", "sequence"]
        indexes = [
            models.Index(fields=["status", "committed_at"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["incident_id", "sequence"], name="unique_change_sequence"
            ),
        ]

    def __str__(self):
        return f"{self.change_type} {self.incident_id}#{self.sequence} [{self.status}]"

    @property
    def before_state(self) -> str:
        return (self.before or {}).get("state", "")

    @property
    def after_state(self) -> str:
        return (self.after or {}).get("state", "")
