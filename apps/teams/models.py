"""
Team, membership and on-call schedule models.

Teams own external monitoring accounts (used to route incoming alarms) and
carry time-windowed schedule slots that decide who is on call.
"""

import uuid

from django.db import models
from django.db.models import F, Q


class EscalationTarget(models.TextChoices):
    """Who an escalation level pages."""

    ON_CALL = "on_call", "On call"
    ALL_TEAM = "all_team", "All team"


def default_escalation_policy() -> dict:
    return {
        "levels": [
            {"delay_minutes": 5, "target": EscalationTarget.ON_CALL.value},
            {"delay_minutes": 15, "target": EscalationTarget.ALL_TEAM.value},
        ]
    }


class Team(models.Model):
    """
    A group of responders that owns a set of external monitoring accounts.

    The escalation policy is stored and editable but not executed.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    escalation_policy = models.JSONField(
        default=default_escalation_policy,
        blank=True,
        help_text="Ordered escalation levels: {levels: [{delay_minutes, target}]}.",
    )
    created_by = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name

    @property
    def account_ids(self) -> list[str]:
        return sorted(self.accounts.values_list("account_id", flat=True))

    def has_member(self, user_id: str) -> bool:
        return self.memberships.filter(user_id=user_id).exists()

    def to_dict(self) -> dict:
        return {
            "team_id": str(self.id),
            "name": self.name,
            "aws_account_ids": self.account_ids,
            "escalation_policy": self.escalation_policy,
            "members": sorted(self.memberships.values_list("user_id", flat=True)),
            "created_at": self.created_at.isoformat(),
        }


class TeamAccount(models.Model):
    """
    Index of external account id -> owning team.

    An account belongs to at most one team, so alarm routing is a single
    indexed lookup rather than a scan over every team.
    """

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="accounts")
    account_id = models.CharField(max_length=64, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["account_id"]

    def __str__(self):
        return f"{self.account_id} -> {self.team_id}"


class TeamMembership(models.Model):
    """A responder's membership in a team."""

    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="memberships")
    user_id = models.CharField(max_length=255, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(fields=["team", "user_id"], name="unique_team_member"),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.team_id}"


class ScheduleSlot(models.Model):
    """
    A responder's on-call window for a team: [start, end).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    team = models.ForeignKey(Team, on_delete=models.CASCADE, related_name="slots")
    user_id = models.CharField(max_length=255)
    start = models.DateTimeField()
    end = models.DateTimeField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["start", "created_at"]
        indexes = [
            models.Index(fields=["team", "start", "end"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(start__lt=F("end")), name="slot_start_before_end"),
        ]

    def __str__(self):
        return f"{self.user_id} on call for {self.team_id} [{self.start} - {self.end})"

    def covers(self, at) -> bool:
        return self.start <= at < self.end

    def to_dict(self) -> dict:
        return {
            "team_id": str(self.team_id),
            "slot_id": str(self.id),
            "user_id": self.user_id,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }
