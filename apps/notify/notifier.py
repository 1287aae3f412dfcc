"""
Change-detection notifier.

Consumes IncidentChange rows (the store's change feed) and decides, per
change, whether a push is warranted and what it says.

Ordering: changes of one incident are handled in sequence order. A worker
first claims the change row (pending -> processing). Before handling it, the
worker drains every earlier unfinished change of the same incident; if one of
those is claimed by another worker, ChangeOutOfOrder is raised and the task
retries later. Different incidents never wait on each other.

Idempotency: every notified transition leaves a NotificationRecord keyed by
(incident id, sequence, before state, after state, change time); a redelivered
change finds the record and sends nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from django.conf import settings
from django.db.models import F, Q
from django.utils import timezone

from apps.alerts import monitoring
from apps.alerts.models import ChangeStatus, ChangeType, IncidentChange, IncidentState
from apps.alerts.monitoring import SignalTags
from apps.alerts.store import IncidentStore, Outcome
from apps.notify.drivers import PushNotification
from apps.notify.models import NotificationKind, NotificationRecord
from apps.notify.services import PushDispatcher
from apps.notify.templating import SEVERITY_EMOJIS, render_push_content

logger = logging.getLogger(__name__)


class ChangeOutOfOrder(Exception):
    """An earlier change of the same incident is still being processed elsewhere."""


@dataclass(frozen=True)
class ChangeEvent:
    """A committed incident mutation as seen by the notifier."""

    incident_id: str
    sequence: int
    change_type: str
    before: dict[str, Any] | None
    after: dict[str, Any] | None
    committed_at: datetime
    change_id: int | None = None

    @classmethod
    def from_change(cls, change: IncidentChange) -> "ChangeEvent":
        return cls(
            incident_id=str(change.incident_id),
            sequence=change.sequence,
            change_type=change.change_type,
            before=change.before,
            after=change.after,
            committed_at=change.committed_at,
            change_id=change.pk,
        )

    @property
    def before_state(self) -> str:
        return (self.before or {}).get("state", "")

    @property
    def after_state(self) -> str:
        return (self.after or {}).get("state", "")

    @property
    def dedupe_key(self) -> str:
        return (
            f"{self.incident_id}:{self.sequence}:{self.before_state}:{self.after_state}:"
            f"{self.committed_at.isoformat()}"
        )


# (before state, after state) -> kind, for modify events
TRANSITION_KINDS = {
    (IncidentState.TRIGGERED, IncidentState.ACKED): NotificationKind.ACKNOWLEDGED,
    (IncidentState.ACKED, IncidentState.RESOLVED): NotificationKind.RESOLVED,
    (IncidentState.ACKED, IncidentState.TRIGGERED): NotificationKind.UNACKNOWLEDGED,
}


def classify(event: ChangeEvent) -> NotificationKind | None:
    """Decide which notification, if any, a change warrants."""
    if event.change_type == ChangeType.INSERT:
        if event.after_state == IncidentState.TRIGGERED:
            return NotificationKind.NEW_INCIDENT
        return None
    if event.change_type == ChangeType.MODIFY:
        return TRANSITION_KINDS.get((event.before_state, event.after_state))
    return None


def _trigger_note(incident: dict[str, Any]) -> str:
    for entry in incident.get("timeline") or []:
        if entry.get("event") == "triggered":
            return entry.get("note") or ""
    return ""


def build_notification(kind: str, incident: dict[str, Any], badge: int) -> PushNotification:
    """Render push content for a classified change."""
    severity = incident.get("severity", "info")
    context = {
        "incident": incident,
        "emoji": SEVERITY_EMOJIS.get(severity, ""),
        "acker": incident.get("acked_by_name") or incident.get("acked_by") or "",
        "trigger_note": _trigger_note(incident),
        "badge": badge,
    }
    title, body = render_push_content(kind, context)

    critical = severity == "critical"
    if kind in (NotificationKind.NEW_INCIDENT, NotificationKind.UNACKNOWLEDGED):
        sound = "critical_alarm.caf" if critical else "default"
        level = "critical" if critical else "time-sensitive"
    elif kind == NotificationKind.ACKNOWLEDGED:
        sound, level = "default", "active"
    else:
        sound, level = "default", "passive"

    return PushNotification(
        title=title,
        body=body,
        sound=sound,
        interruption_level=level,
        badge=badge,
        data={
            "incident_id": incident.get("incident_id"),
            "severity": severity,
            "state": incident.get("state"),
            "kind": str(kind),
        },
    )


@dataclass
class NotifyResult:
    """Outcome of handling one change event."""

    outcome: Outcome = Outcome.OK
    kind: str = ""
    recipient: str = ""
    devices_attempted: int = 0
    devices_succeeded: int = 0
    skipped: str = ""

    @property
    def sent(self) -> bool:
        return bool(self.kind) and not self.skipped

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "kind": self.kind,
            "recipient": self.recipient,
            "devices_attempted": self.devices_attempted,
            "devices_succeeded": self.devices_succeeded,
            "skipped": self.skipped,
        }


class ChangeNotifier:
    """
    Turns incident changes into pushes.

    Usage:
        notifier = ChangeNotifier()
        notifier.process_change(change_id)   # ordered, claimed, deduped
        notifier.handle(event)               # decision + dispatch for one event
    """

    def __init__(self, dispatcher: PushDispatcher | None = None, store: IncidentStore | None = None):
        self._dispatcher = dispatcher
        self.store = store or IncidentStore()

    @property
    def dispatcher(self) -> PushDispatcher:
        if self._dispatcher is None:
            self._dispatcher = PushDispatcher()
        return self._dispatcher

    # ------------------------------------------------------------------
    # Ordered processing of change rows
    # ------------------------------------------------------------------

    def process_change(self, change_id: int) -> NotifyResult:
        change = IncidentChange.objects.filter(pk=change_id).first()
        if change is None:
            return NotifyResult(Outcome.NOT_FOUND, skipped="change not found")
        if change.status == ChangeStatus.DONE:
            return NotifyResult(skipped="already processed")

        earlier = IncidentChange.objects.filter(
            incident_id=change.incident_id, sequence__lt=change.sequence
        ).exclude(status=ChangeStatus.DONE)
        for prior in earlier.order_by("sequence"):
            self._process_one(prior)

        return self._process_one(change)

    def drain_pending(self, limit: int | None = None) -> int:
        """Process unfinished changes oldest first. Returns how many were handled."""
        qs = IncidentChange.objects.filter(
            Q(status=ChangeStatus.PENDING)
            | Q(status=ChangeStatus.PROCESSING, claimed_at__lt=self._stale_before())
        ).order_by("incident_id", "sequence")
        if limit:
            qs = qs[:limit]

        handled = 0
        for change_id in list(qs.values_list("pk", flat=True)):
            try:
                self.process_change(change_id)
            except ChangeOutOfOrder as e:
                logger.info("Deferring change %s: %s", change_id, e)
                continue
            handled += 1
        return handled

    def _stale_before(self) -> datetime:
        return timezone.now() - timedelta(seconds=settings.CHANGE_CLAIM_TIMEOUT_SECONDS)

    def _claim(self, change: IncidentChange) -> bool:
        claimable = Q(status=ChangeStatus.PENDING) | Q(
            status=ChangeStatus.PROCESSING, claimed_at__lt=self._stale_before()
        )
        return bool(
            IncidentChange.objects.filter(claimable, pk=change.pk).update(
                status=ChangeStatus.PROCESSING,
                claimed_at=timezone.now(),
                attempts=F("attempts") + 1,
            )
        )

    def _process_one(self, change: IncidentChange) -> NotifyResult:
        if not self._claim(change):
            change.refresh_from_db(fields=["status"])
            if change.status == ChangeStatus.DONE:
                return NotifyResult(skipped="already processed")
            raise ChangeOutOfOrder(
                f"change {change.incident_id}#{change.sequence} is claimed by another worker"
            )

        try:
            result = self.handle(ChangeEvent.from_change(change))
        except Exception:
            # Release the claim so a retry can pick the change up immediately.
            IncidentChange.objects.filter(pk=change.pk).update(
                status=ChangeStatus.PENDING, claimed_at=None
            )
            raise

        IncidentChange.objects.filter(pk=change.pk).update(
            status=ChangeStatus.DONE, processed_at=timezone.now()
        )
        return result

    # ------------------------------------------------------------------
    # Decision and dispatch
    # ------------------------------------------------------------------

    def handle(self, event: ChangeEvent) -> NotifyResult:
        kind = classify(event)
        if kind is None:
            logger.debug(
                "No notification for %s %s -> %s on %s",
                event.change_type,
                event.before_state or "-",
                event.after_state or "-",
                event.incident_id,
            )
            return NotifyResult(skipped="no notification for this change")

        incident = event.after or {}
        if incident.get("game"):
            return NotifyResult(kind=kind, skipped="game incident")

        recipient = incident.get("assigned_to") or ""
        if not recipient:
            logger.warning("Incident %s has no assignee; nothing to notify", event.incident_id)
            return NotifyResult(kind=kind, skipped="no assignee")

        badge = self.store.count_unacked(recipient)
        record, created = NotificationRecord.objects.get_or_create(
            dedupe_key=event.dedupe_key,
            defaults={
                "incident_id": event.incident_id,
                "change_id": event.change_id,
                "kind": kind,
                "recipient": recipient,
                "badge": badge,
            },
        )
        if not created:
            logger.info("Duplicate change %s for %s; not pushing again", event.dedupe_key, recipient)
            return NotifyResult(kind=kind, recipient=recipient, skipped="duplicate")

        notification = build_notification(kind, incident, badge)
        tags = SignalTags(
            stage="notify",
            incident_id=event.incident_id,
            team_id=incident.get("team_id") or "",
        )
        dispatch = self.dispatcher.send_to_user(recipient, notification, tags)

        NotificationRecord.objects.filter(pk=record.pk).update(
            devices_attempted=dispatch.attempted,
            devices_succeeded=dispatch.succeeded,
        )
        monitoring.emit("change.processed", tags, kind=str(kind))

        result = NotifyResult(
            kind=kind,
            recipient=recipient,
            devices_attempted=dispatch.attempted,
            devices_succeeded=dispatch.succeeded,
        )
        if not dispatch.attempted:
            result.skipped = "no devices"
        return result
