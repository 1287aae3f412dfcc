"""
Incident store: the only code path that mutates incidents.

Every transition is a conditional write. The store reads the current row,
checks the state precondition, then issues
``UPDATE ... WHERE id = ? AND version = ? AND state IN (...)``. When that
update touches no row, someone else committed first: the store re-reads and
either reports a Conflict (the precondition no longer holds) or retries the
compare-and-swap (only the version moved, e.g. a concurrent reassignment).

Within the same transaction the store appends the timeline entry and writes an
IncidentChange row carrying before/after snapshots. Once the transaction
commits, ``incident_changed`` is sent; that signal is the change feed the
notifier subscribes to.

Business outcomes (not found, conflict, validation) come back as
TransitionResult values. Database errors propagate to the caller, which may
retry them.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from functools import partial
from typing import Any, Callable, Iterable

from django.conf import settings
from django.db import transaction
from django.db.models import F, QuerySet
from django.dispatch import Signal
from django.utils import timezone

from apps.alerts import monitoring
from apps.alerts.models import (
    ACTIVE_STATES,
    SYSTEM_ACTOR,
    ChangeType,
    Incident,
    IncidentChange,
    IncidentSeverity,
    IncidentState,
    TimelineEntry,
    TimelineEvent,
)
from apps.alerts.monitoring import SignalTags

logger = logging.getLogger(__name__)

# Sent after commit with change_id, incident_id and sequence.
incident_changed = Signal()

# Bounded retries when only the version moved between read and write.
MAX_CAS_ATTEMPTS = 5


class Outcome(Enum):
    """Result taxonomy for business operations."""

    OK = "ok"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    VALIDATION = "validation"


@dataclass
class TransitionResult:
    """Result of a store operation."""

    outcome: Outcome
    incident: Incident | None = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK

    @property
    def is_conflict(self) -> bool:
        return self.outcome is Outcome.CONFLICT

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.incident is not None:
            data["incident"] = self.incident.to_dict()
        return data


def parse_uuid(value: Any) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def _publish(change_id: int, incident_id: uuid.UUID, sequence: int) -> None:
    responses = incident_changed.send_robust(
        sender=IncidentStore,
        change_id=change_id,
        incident_id=str(incident_id),
        sequence=sequence,
    )
    for receiver, response in responses:
        if isinstance(response, Exception):
            # The row stays pending; the periodic drain picks it up.
            logger.error(
                "Change feed receiver %s failed for change %s: %s", receiver, change_id, response
            )


class IncidentStore:
    """
    Persisted incident state machine.

    Usage:
        store = IncidentStore()
        incident = store.create(team=team, alarm_name="HighCPU", severity="critical",
                                assigned_to="alice")
        result = store.ack(incident.id, actor="bob")
        if result.is_conflict:
            ...  # someone else already handled it
    """

    # ------------------------------------------------------------------
    # Creation and reads
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        alarm_name: str,
        severity: str = IncidentSeverity.WARNING,
        assigned_to: str = "",
        team=None,
        alarm_ref: str = "",
        note: str = "",
        actor: str = SYSTEM_ACTOR,
        expires_at: datetime | None = None,
        is_game: bool = False,
        triggered_by: str = "",
        triggered_by_name: str = "",
        point_multiplier: int = 1,
    ) -> Incident:
        """Create a triggered incident with its first timeline entry."""
        now = timezone.now()
        if expires_at is None:
            expires_at = now + timedelta(days=settings.INCIDENT_TTL_DAYS)

        with transaction.atomic():
            incident = Incident.objects.create(
                team=team,
                alarm_name=alarm_name,
                alarm_ref=alarm_ref,
                state=IncidentState.TRIGGERED,
                severity=severity,
                assigned_to=assigned_to,
                escalation_level=0,
                version=1,
                triggered_at=now,
                last_event_at=now,
                expires_at=expires_at,
                is_game=is_game,
                triggered_by=triggered_by,
                triggered_by_name=triggered_by_name,
                point_multiplier=point_multiplier,
            )
            TimelineEntry.objects.create(
                incident=incident,
                sequence=1,
                timestamp=now,
                event=TimelineEvent.TRIGGERED,
                actor=actor,
                note=note or "",
            )
            change = IncidentChange.objects.create(
                incident_id=incident.id,
                sequence=1,
                change_type=ChangeType.INSERT,
                before=None,
                after=incident.to_dict(),
                committed_at=now,
            )
            transaction.on_commit(partial(_publish, change.pk, incident.id, 1))

        logger.info(
            "Created incident %s (%s, %s) assigned to %s",
            incident.id,
            incident.alarm_name,
            incident.severity,
            incident.assigned_to or "-",
        )
        return incident

    def get(self, incident_id) -> Incident | None:
        pk = parse_uuid(incident_id)
        if pk is None:
            return None
        return Incident.objects.prefetch_related("timeline").filter(pk=pk).first()

    def list(
        self,
        *,
        team_id=None,
        state: str | None = None,
        view: str | None = None,
        assigned_to: str | None = None,
        include_game: bool = False,
        limit: int | None = None,
    ) -> list[Incident]:
        """
        List incidents newest first.

        ``view="active"`` selects triggered and acked incidents, ``view="history"``
        resolved ones; ``state`` selects one state exactly.
        """
        qs: QuerySet = Incident.objects.all()
        if not include_game:
            qs = qs.filter(is_game=False)
        if team_id:
            qs = qs.filter(team_id=team_id)
        if assigned_to:
            qs = qs.filter(assigned_to=assigned_to)
        if state:
            qs = qs.filter(state=state)
        elif view == "active":
            qs = qs.filter(state__in=ACTIVE_STATES)
        elif view == "history":
            qs = qs.filter(state=IncidentState.RESOLVED)
        qs = qs.order_by("-triggered_at").prefetch_related("timeline")
        if limit:
            qs = qs[:limit]
        return list(qs)

    def count_unacked(self, responder: str) -> int:
        """Live count of triggered incidents assigned to ``responder``."""
        if not responder:
            return 0
        return Incident.objects.filter(
            assigned_to=responder,
            state=IncidentState.TRIGGERED,
            is_game=False,
        ).count()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def ack(self, incident_id, actor: str, actor_name: str = "") -> TransitionResult:
        """triggered -> acked. Exactly one concurrent acknowledger wins."""

        def changes(current: Incident, at: datetime) -> dict[str, Any]:
            return {
                "state": IncidentState.ACKED,
                "acked_at": at,
                "acked_by": actor,
                "acked_by_name": actor_name,
            }

        def conflict(current: Incident) -> str:
            if current.state == IncidentState.ACKED:
                winner = current.acked_by_name or current.acked_by or "someone else"
                return f"Incident already acknowledged by {winner}"
            return "Incident already resolved"

        return self._transition(
            incident_id,
            allowed=(IncidentState.TRIGGERED,),
            event=TimelineEvent.ACKED,
            actor=actor,
            changes=changes,
            conflict=conflict,
        )

    def unack(self, incident_id, actor: str) -> TransitionResult:
        """acked -> triggered. Clears acked_at; the acked timeline entry stays."""

        def changes(current: Incident, at: datetime) -> dict[str, Any]:
            return {
                "state": IncidentState.TRIGGERED,
                "acked_at": None,
                "acked_by": "",
                "acked_by_name": "",
            }

        return self._transition(
            incident_id,
            allowed=(IncidentState.ACKED,),
            event=TimelineEvent.UNACKNOWLEDGED,
            actor=actor,
            changes=changes,
            conflict=lambda current: f"Incident is not acknowledged (state: {current.state})",
        )

    def resolve(self, incident_id, actor: str, note: str = "") -> TransitionResult:
        """triggered|acked -> resolved. Resolving twice is a conflict."""

        def changes(current: Incident, at: datetime) -> dict[str, Any]:
            return {"state": IncidentState.RESOLVED, "resolved_at": at}

        return self._transition(
            incident_id,
            allowed=ACTIVE_STATES,
            event=TimelineEvent.RESOLVED,
            actor=actor,
            note=note,
            changes=changes,
            conflict=lambda current: "Incident already resolved",
        )

    def reassign(self, incident_id, actor: str, new_responder: str) -> TransitionResult:
        """Change the assignee of an unresolved incident; state is untouched."""
        new_responder = (new_responder or "").strip()
        if not new_responder:
            return TransitionResult(Outcome.VALIDATION, error="Missing user_id")

        def changes(current: Incident, at: datetime) -> dict[str, Any]:
            return {"assigned_to": new_responder}

        return self._transition(
            incident_id,
            allowed=ACTIVE_STATES,
            event=TimelineEvent.REASSIGNED,
            actor=actor,
            note=f"Reassigned to {new_responder}",
            changes=changes,
            conflict=lambda current: "Cannot reassign a resolved incident",
        )

    def _transition(
        self,
        incident_id,
        *,
        allowed: Iterable[str],
        event: str,
        actor: str,
        changes: Callable[[Incident, datetime], dict[str, Any]],
        conflict: Callable[[Incident], str],
        note: str = "",
    ) -> TransitionResult:
        pk = parse_uuid(incident_id)
        if pk is None:
            return TransitionResult(Outcome.NOT_FOUND, error="Incident not found")
        allowed = tuple(allowed)

        for _attempt in range(MAX_CAS_ATTEMPTS):
            with transaction.atomic():
                current = Incident.objects.filter(pk=pk).first()
                if current is None:
                    return TransitionResult(Outcome.NOT_FOUND, error="Incident not found")
                if current.state not in allowed:
                    logger.info(
                        "Transition %s on %s rejected: state is %s", event, pk, current.state
                    )
                    monitoring.emit(
                        "incident.conflict",
                        SignalTags(stage="store", incident_id=str(pk)),
                        event=str(event),
                        state=current.state,
                    )
                    return TransitionResult(Outcome.CONFLICT, current, conflict(current))

                # Timestamps never go backwards for one incident.
                at = max(timezone.now(), current.last_event_at)
                before = current.to_dict()

                updated = Incident.objects.filter(
                    pk=pk, version=current.version, state__in=allowed
                ).update(
                    **changes(current, at),
                    last_event_at=at,
                    version=F("version") + 1,
                )
                if updated:
                    incident = self._record(pk, before, event, actor, note, at)
                    logger.info("Incident %s: %s by %s", pk, event, actor)
                    return TransitionResult(Outcome.OK, incident)

        current = self.get(pk)
        if current is None:
            return TransitionResult(Outcome.NOT_FOUND, error="Incident not found")
        logger.warning("Transition %s on %s gave up after %d attempts", event, pk, MAX_CAS_ATTEMPTS)
        return TransitionResult(
            Outcome.CONFLICT, current, "Incident is being modified concurrently, refresh and retry"
        )

    def _record(
        self,
        pk: uuid.UUID,
        before: dict[str, Any],
        event: str,
        actor: str,
        note: str,
        at: datetime,
    ) -> Incident:
        """Append the timeline entry and change-log row for a committed update."""
        incident = Incident.objects.get(pk=pk)
        TimelineEntry.objects.create(
            incident=incident,
            sequence=incident.version,
            timestamp=at,
            event=event,
            actor=actor,
            note=note or "",
        )
        change = IncidentChange.objects.create(
            incident_id=pk,
            sequence=incident.version,
            change_type=ChangeType.MODIFY,
            before=before,
            after=incident.to_dict(),
            committed_at=at,
        )
        transaction.on_commit(partial(_publish, change.pk, pk, incident.version))
        return self.get(pk)

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def delete(self, incidents: Iterable[Incident]) -> int:
        """Delete incidents, recording a remove change for each one."""
        deleted = 0
        for incident in incidents:
            if self._delete_one(incident.pk):
                deleted += 1
        return deleted

    def _delete_one(self, pk: uuid.UUID) -> bool:
        for _attempt in range(MAX_CAS_ATTEMPTS):
            with transaction.atomic():
                current = Incident.objects.filter(pk=pk).first()
                if current is None:
                    return False
                before = current.to_dict()
                # Claim the final sequence number before deleting.
                claimed = Incident.objects.filter(pk=pk, version=current.version).update(
                    version=F("version") + 1
                )
                if not claimed:
                    continue
                sequence = current.version + 1
                Incident.objects.filter(pk=pk).delete()
                change = IncidentChange.objects.create(
                    incident_id=pk,
                    sequence=sequence,
                    change_type=ChangeType.REMOVE,
                    before=before,
                    after=None,
                )
                transaction.on_commit(partial(_publish, change.pk, pk, sequence))
                return True
        logger.warning("Could not delete incident %s after %d attempts", pk, MAX_CAS_ATTEMPTS)
        return False

    def delete_game_incidents(self) -> int:
        return self.delete(Incident.objects.filter(is_game=True).only("pk"))

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or timezone.now()
        expired = Incident.objects.filter(expires_at__lte=now).only("pk")
        count = self.delete(expired)
        if count:
            logger.info("Purged %d expired incident(s)", count)
        return count
