"""Responder resolution: external account -> team -> current on-call responder.

Both lookups are pure reads. "Nothing matched" is returned as None; callers
decide whether that is a failure (alarm ingestion drops the alarm and reports
it) or simply an empty answer (the schedule surface).
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.utils import timezone

from apps.teams.models import ScheduleSlot, Team, TeamAccount

logger = logging.getLogger(__name__)


class ResponderResolver:
    """
    Resolves which team owns an alarm and who is on call for it.

    Usage:
        resolver = ResponderResolver()
        team = resolver.resolve_team("123456789012")
        responder = resolver.resolve_on_call(team.id) if team else None
    """

    def resolve_team(self, account_id: str) -> Team | None:
        """Return the team owning ``account_id`` via the account index."""
        if not account_id:
            return None
        link = TeamAccount.objects.select_related("team").filter(account_id=account_id).first()
        return link.team if link else None

    def current_slot(self, team_id, at: datetime | None = None) -> ScheduleSlot | None:
        """
        Return the slot whose [start, end) window contains ``at``.

        Overlapping slots are allowed; the earliest-starting match wins
        (ties broken by creation order).
        """
        at = at or timezone.now()
        return (
            ScheduleSlot.objects.filter(team_id=team_id, start__lte=at, end__gt=at)
            .order_by("start", "created_at")
            .first()
        )

    def resolve_on_call(self, team_id, at: datetime | None = None) -> str | None:
        slot = self.current_slot(team_id, at)
        if slot is None:
            logger.debug("No on-call slot for team %s at %s", team_id, at)
            return None
        return slot.user_id
