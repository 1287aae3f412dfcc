"""
Game-mode models.

GameSession is a single keyed row: at most one round runs system-wide.
Score aggregates a responder's points; ScoreAward records the award for one
game incident so a replayed acknowledgement never counts twice.
"""

import uuid

from django.db import models
from django.utils import timezone


class GameSession(models.Model):
    """The one active game round, if any."""

    SINGLETON_KEY = "global"

    key = models.CharField(max_length=20, primary_key=True, default=SINGLETON_KEY, editable=False)
    session_id = models.UUIDField(default=uuid.uuid4, editable=False)
    started_by = models.CharField(max_length=255)
    started_by_name = models.CharField(max_length=255, blank=True, default="")
    started_at = models.DateTimeField(default=timezone.now)
    ends_at = models.DateTimeField()

    def __str__(self):
        return f"Game by {self.started_by_name or self.started_by} until {self.ends_at:%H:%M:%S}"

    def is_active(self, now=None) -> bool:
        return (now or timezone.now()) < self.ends_at

    def time_remaining_ms(self, now=None) -> int:
        remaining = self.ends_at - (now or timezone.now())
        return max(0, int(remaining.total_seconds() * 1000))

    def to_dict(self) -> dict:
        return {
            "active": self.is_active(),
            "session_id": str(self.session_id),
            "started_at": self.started_at.isoformat(),
            "ends_at": self.ends_at.isoformat(),
            "started_by": self.started_by_name or self.started_by,
            "time_remaining_ms": self.time_remaining_ms(),
        }


class Score(models.Model):
    """Cumulative game score of one responder."""

    user_id = models.CharField(max_length=255, unique=True)
    display_name = models.CharField(max_length=255, blank=True, default="")
    total_points = models.PositiveIntegerField(default=0)
    total_acks = models.PositiveIntegerField(default=0)
    high_score = models.PositiveIntegerField(
        default=0,
        help_text="Best single-round total.",
    )
    round_session_id = models.UUIDField(null=True, blank=True)
    round_points = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-total_points", "user_id"]
        indexes = [
            models.Index(fields=["-total_points"], name="score_leaderboard_idx"),
        ]

    def __str__(self):
        return f"{self.display_name or self.user_id}: {self.total_points}"

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name or self.user_id.split("@")[0],
            "total_points": self.total_points,
            "total_acks": self.total_acks,
            "high_score": self.high_score,
        }


class ScoreAward(models.Model):
    """Points granted for acknowledging one game incident."""

    incident_id = models.UUIDField(unique=True)
    session_id = models.UUIDField(null=True, blank=True)
    user_id = models.CharField(max_length=255, db_index=True)
    points = models.PositiveIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.user_id} +{self.points} ({self.incident_id})"
