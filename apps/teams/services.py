"""
Team and schedule services.

Business outcomes come back as TeamResult values carrying an Outcome;
storage errors propagate. Team changes are limited to members: for anyone
else the team does not exist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_tz
from typing import Any

from django.db import IntegrityError, transaction
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.alerts.store import Outcome, parse_uuid
from apps.teams.models import (
    EscalationTarget,
    ScheduleSlot,
    Team,
    TeamAccount,
    TeamMembership,
    default_escalation_policy,
)
from apps.teams.resolver import ResponderResolver

logger = logging.getLogger(__name__)

MAX_TEAM_NAME_LENGTH = 255


@dataclass
class TeamResult:
    """Result of a team or schedule operation."""

    outcome: Outcome
    data: dict[str, Any] = field(default_factory=dict)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


def _not_found(what: str = "Team") -> TeamResult:
    return TeamResult(Outcome.NOT_FOUND, error=f"{what} not found")


def _invalid(message: str) -> TeamResult:
    return TeamResult(Outcome.VALIDATION, error=message)


def parse_instant(value: Any) -> datetime:
    """
    Parse an ISO-8601 string or epoch milliseconds into an aware datetime.

    Raises:
        ValueError: if the value is neither.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=dt_tz.utc)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        if text.lstrip("-").isdigit():
            return datetime.fromtimestamp(int(text) / 1000, tz=dt_tz.utc)
        parsed = parse_datetime(text.replace("Z", "+00:00"))
        if parsed is None:
            raise ValueError(f"Invalid timestamp: {value!r}")
        if timezone.is_naive(parsed):
            parsed = timezone.make_aware(parsed, dt_tz.utc)
        return parsed
    raise ValueError(f"Invalid timestamp: {value!r}")


def validate_escalation_policy(policy: Any) -> str:
    """Return an error message, or "" when the policy is well formed."""
    if not isinstance(policy, dict) or not isinstance(policy.get("levels"), list):
        return "escalation_policy must be an object with a 'levels' list"
    for level in policy["levels"]:
        if not isinstance(level, dict):
            return "each escalation level must be an object"
        delay = level.get("delay_minutes")
        if not isinstance(delay, int) or isinstance(delay, bool) or delay < 0:
            return "delay_minutes must be a non-negative integer"
        if level.get("target") not in EscalationTarget.values:
            return f"target must be one of {', '.join(EscalationTarget.values)}"
    return ""


def _clean_account_ids(value: Any) -> list[str] | None:
    if not isinstance(value, list) or not all(isinstance(a, (str, int)) for a in value):
        return None
    return sorted({str(a).strip() for a in value if str(a).strip()})


class TeamService:
    """
    Team management for a caller.

    Usage:
        service = TeamService()
        result = service.create_team("alice", {"name": "Payments", "aws_account_ids": ["111"]})
    """

    def list_teams(self, caller_id: str) -> list[Team]:
        return list(
            Team.objects.filter(memberships__user_id=caller_id)
            .prefetch_related("accounts", "memberships")
            .distinct()
        )

    def get_team(self, caller_id: str, team_id) -> Team | None:
        pk = parse_uuid(team_id)
        if pk is None:
            return None
        team = Team.objects.filter(pk=pk).first()
        if team is None or not team.has_member(caller_id):
            return None
        return team

    def create_team(self, caller_id: str, body: dict[str, Any]) -> TeamResult:
        name = (body.get("name") or "").strip() if isinstance(body.get("name"), str) else ""
        if not name:
            return _invalid("Missing name")
        if len(name) > MAX_TEAM_NAME_LENGTH:
            return _invalid(f"name must be at most {MAX_TEAM_NAME_LENGTH} characters")

        account_ids = _clean_account_ids(body.get("aws_account_ids", []))
        if account_ids is None:
            return _invalid("aws_account_ids must be a list")

        policy = body.get("escalation_policy") or default_escalation_policy()
        error = validate_escalation_policy(policy)
        if error:
            return _invalid(error)

        try:
            with transaction.atomic():
                team = Team.objects.create(name=name, escalation_policy=policy, created_by=caller_id)
                TeamMembership.objects.create(team=team, user_id=caller_id)
                for account_id in account_ids:
                    TeamAccount.objects.create(team=team, account_id=account_id)
        except IntegrityError:
            return _invalid("One of aws_account_ids already belongs to another team")

        logger.info("Team %s (%s) created by %s", team.id, team.name, caller_id)
        return TeamResult(Outcome.OK, {"team": team.to_dict()})

    def update_team(self, caller_id: str, team_id, body: dict[str, Any]) -> TeamResult:
        team = self.get_team(caller_id, team_id)
        if team is None:
            return _not_found()

        updated = False
        with transaction.atomic():
            if "name" in body:
                name = body["name"].strip() if isinstance(body["name"], str) else ""
                if not name or len(name) > MAX_TEAM_NAME_LENGTH:
                    return _invalid("Invalid name")
                team.name = name
                updated = True

            if "escalation_policy" in body:
                error = validate_escalation_policy(body["escalation_policy"])
                if error:
                    return _invalid(error)
                team.escalation_policy = body["escalation_policy"]
                updated = True

            if "aws_account_ids" in body:
                account_ids = _clean_account_ids(body["aws_account_ids"])
                if account_ids is None:
                    return _invalid("aws_account_ids must be a list")
                taken = TeamAccount.objects.filter(account_id__in=account_ids).exclude(team=team)
                if taken.exists():
                    return _invalid(
                        "Account already belongs to another team: "
                        + ", ".join(taken.values_list("account_id", flat=True))
                    )
                team.accounts.exclude(account_id__in=account_ids).delete()
                existing = set(team.accounts.values_list("account_id", flat=True))
                for account_id in account_ids:
                    if account_id not in existing:
                        TeamAccount.objects.create(team=team, account_id=account_id)
                updated = True

            if not updated:
                return _invalid("No updates provided")
            team.save()

        return TeamResult(Outcome.OK, {"team": team.to_dict()})

    def add_member(self, caller_id: str, team_id, user_id: Any) -> TeamResult:
        team = self.get_team(caller_id, team_id)
        if team is None:
            return _not_found()
        if not isinstance(user_id, str) or not user_id.strip():
            return _invalid("Missing user_id")
        TeamMembership.objects.get_or_create(team=team, user_id=user_id.strip())
        return TeamResult(Outcome.OK, {"message": "Member added"})

    def remove_member(self, caller_id: str, team_id, user_id: str) -> TeamResult:
        team = self.get_team(caller_id, team_id)
        if team is None:
            return _not_found()
        deleted, _ = TeamMembership.objects.filter(team=team, user_id=user_id).delete()
        if not deleted:
            return _not_found("Member")
        return TeamResult(Outcome.OK, {"message": "Member removed"})


class ScheduleService:
    """On-call schedule management."""

    def __init__(self, resolver: ResponderResolver | None = None):
        self.resolver = resolver or ResponderResolver()
        self.teams = TeamService()

    def current_on_call(self, caller_id: str, at: datetime | None = None) -> dict[str, Any]:
        """Current on-call responder for each of the caller's teams."""
        at = at or timezone.now()
        on_call: dict[str, Any] = {}
        for team in self.teams.list_teams(caller_id):
            slot = self.resolver.current_slot(team.id, at)
            on_call[str(team.id)] = (
                {"user_id": slot.user_id, "slot": slot.to_dict()} if slot else None
            )
        return on_call

    def list_slots(self, caller_id: str, team_id) -> TeamResult:
        team = self.teams.get_team(caller_id, team_id)
        if team is None:
            return _not_found()
        slots = team.slots.order_by("start", "created_at")
        return TeamResult(Outcome.OK, {"schedules": [s.to_dict() for s in slots]})

    def create_slot(self, caller_id: str, team_id, body: dict[str, Any]) -> TeamResult:
        team = self.teams.get_team(caller_id, team_id)
        if team is None:
            return _not_found()

        user_id = body.get("user_id")
        missing = [k for k in ("start", "end") if body.get(k) in (None, "")]
        if not isinstance(user_id, str) or not user_id.strip() or missing:
            return _invalid("Missing user_id, start, or end")
        try:
            start = parse_instant(body["start"])
            end = parse_instant(body["end"])
        except ValueError as e:
            return _invalid(str(e))
        if start >= end:
            return _invalid("start must be before end")

        slot = ScheduleSlot.objects.create(team=team, user_id=user_id.strip(), start=start, end=end)
        logger.info("Slot %s for %s on team %s created by %s", slot.id, slot.user_id, team.id, caller_id)
        return TeamResult(Outcome.OK, {"schedule": slot.to_dict()})

    def delete_slot(self, caller_id: str, team_id, slot_id) -> TeamResult:
        team = self.teams.get_team(caller_id, team_id)
        if team is None:
            return _not_found()
        pk = parse_uuid(slot_id)
        deleted = ScheduleSlot.objects.filter(team=team, pk=pk).delete()[0] if pk else 0
        if not deleted:
            return _not_found("Schedule slot")
        return TeamResult(Outcome.OK, {"message": "Schedule slot deleted"})
