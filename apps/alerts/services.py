"""
Alarm ingestion services.

This module turns incoming alarm payloads into incidents: parse the payload
with a driver, route the alarm to its team and on-call responder, and create
the incident through the store. Pushing the new incident is not done here;
the store's change feed drives the notifier.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from apps.alerts import monitoring
from apps.alerts.drivers import (
    BaseAlarmDriver,
    ParsedAlarm,
    detect_driver,
    get_driver,
)
from apps.alerts.models import SYSTEM_ACTOR, Incident
from apps.alerts.monitoring import SignalTags
from apps.alerts.store import IncidentStore, Outcome
from apps.teams.resolver import ResponderResolver

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Result of processing an incoming alarm payload."""

    outcome: Outcome = Outcome.OK
    source: str = ""
    incidents_created: list[str] = field(default_factory=list)
    alarms_ignored: int = 0
    # Resolution failures: the alarm was dropped because nobody owns it.
    unrouted: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    control_message: str = ""

    @property
    def total_processed(self) -> int:
        return len(self.incidents_created) + self.alarms_ignored + len(self.unrouted)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors or self.unrouted)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "status": "success" if not self.has_errors else "partial",
            "source": self.source,
            "incidents_created": self.incidents_created,
            "alarms_ignored": self.alarms_ignored,
        }
        if self.unrouted:
            data["unrouted"] = self.unrouted
        if self.errors:
            data["errors"] = self.errors
        if self.control_message:
            data["control_message"] = self.control_message
        return data


class AlarmIngestor:
    """
    Converts alarm state changes into incidents.

    For each parsed alarm:
    1. Only ALARM transitions go further; OK/INSUFFICIENT_DATA are ignored
    2. The alarm's account resolves to a team
    3. The team's schedule resolves to the on-call responder
    4. The incident is created in the triggered state, assigned to that responder

    A missing team or responder drops the alarm and reports it; it is never
    retried and never assigned to a fabricated default.

    Usage:
        ingestor = AlarmIngestor()
        result = ingestor.process_webhook(payload)
        # or with a specific driver:
        result = ingestor.process_webhook(payload, driver="cloudwatch")
    """

    def __init__(
        self,
        resolver: ResponderResolver | None = None,
        store: IncidentStore | None = None,
    ):
        self.resolver = resolver or ResponderResolver()
        self.store = store or IncidentStore()

    def process_webhook(
        self,
        payload: dict[str, Any],
        driver: str | BaseAlarmDriver | None = None,
    ) -> IngestResult:
        """
        Process an incoming webhook payload.

        Malformed payloads come back as a VALIDATION outcome; storage errors
        propagate to the caller.
        """
        result = IngestResult()

        try:
            driver_instance = self._get_driver(payload, driver)
        except ValueError as e:
            return IngestResult(outcome=Outcome.VALIDATION, errors=[str(e)])
        if driver_instance is None:
            return IngestResult(
                outcome=Outcome.VALIDATION, errors=["Could not detect driver for payload"]
            )

        try:
            parsed = driver_instance.parse(payload)
        except ValueError as e:
            logger.warning("Rejected %s payload: %s", driver_instance.name, e)
            return IngestResult(
                outcome=Outcome.VALIDATION, source=driver_instance.name, errors=[str(e)]
            )

        result.source = parsed.source
        result.control_message = parsed.control_message

        for alarm in parsed.alarms:
            incident = self.ingest_alarm(alarm, result)
            if incident is not None:
                result.incidents_created.append(str(incident.id))

        logger.info(
            "Processed %d alarm(s) from %s: %d incident(s), %d ignored, %d unrouted",
            len(parsed.alarms),
            parsed.source,
            len(result.incidents_created),
            result.alarms_ignored,
            len(result.unrouted),
        )
        return result

    def ingest_alarm(self, alarm: ParsedAlarm, result: IngestResult | None = None) -> Incident | None:
        """Route one alarm and create its incident. Returns None when dropped."""
        result = result if result is not None else IngestResult()
        tags = SignalTags(stage="ingest", source=result.source, account_id=alarm.account_id)

        if not alarm.is_alarm:
            logger.info("Ignoring alarm state %s for %s", alarm.new_state, alarm.alarm_name)
            monitoring.emit("alarm.ignored", tags, state=alarm.new_state)
            result.alarms_ignored += 1
            return None

        team = self.resolver.resolve_team(alarm.account_id)
        if team is None:
            message = f"No team found for account: {alarm.account_id or '(missing)'}"
            logger.error("%s (alarm %s)", message, alarm.alarm_name)
            monitoring.emit("alarm.unrouted", tags, alarm_name=alarm.alarm_name)
            result.unrouted.append(message)
            return None

        tags.team_id = str(team.id)
        responder = self.resolver.resolve_on_call(team.id)
        if responder is None:
            message = f"No on-call responder for team: {team.id}"
            logger.error("%s (alarm %s)", message, alarm.alarm_name)
            monitoring.emit("alarm.no_responder", tags, alarm_name=alarm.alarm_name)
            result.unrouted.append(message)
            return None

        incident = self.store.create(
            team=team,
            alarm_name=alarm.alarm_name,
            alarm_ref=alarm.alarm_ref,
            severity=alarm.severity,
            assigned_to=responder,
            note=alarm.reason,
            actor=SYSTEM_ACTOR,
        )
        tags.incident_id = str(incident.id)
        monitoring.emit("incident.created", tags, severity=incident.severity)
        return incident

    def _get_driver(
        self,
        payload: dict[str, Any],
        driver: str | BaseAlarmDriver | None,
    ) -> BaseAlarmDriver | None:
        if isinstance(driver, BaseAlarmDriver):
            return driver
        if isinstance(driver, str):
            return get_driver(driver)
        return detect_driver(payload)
