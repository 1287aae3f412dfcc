"""
Monitoring signals for the incident pipeline.

Every stage (ingest, store, notify, game) emits named signals through a
pluggable backend so configuration gaps (unrouted alarms, nobody on call) and
delivery problems are observable as metrics, not only as log lines.

Signals:
- alarm.ignored            non-ALARM state change dropped
- alarm.unrouted           no team owns the alarm's account
- alarm.no_responder       team found but nobody is on call
- incident.created
- incident.conflict        a transition lost its precondition
- push.sent / push.failed  per-device delivery outcome
- push.device_pruned       token reported unregistered, device removed
- change.processed         notifier finished one change event
- game.started / game.ended  round lifecycle
- game.acked               a game ack won the race
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import statsd
from django.conf import settings

logger = logging.getLogger("apps.alerts.monitoring")


@dataclass
class SignalTags:
    """Tags attached to a monitoring signal."""

    stage: str  # ingest, store, notify, game
    incident_id: str = ""
    team_id: str = ""
    source: str = "unknown"
    account_id: str = ""
    environment: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        base = {
            "stage": self.stage,
            "incident_id": self.incident_id,
            "team_id": self.team_id,
            "source": self.source,
            "account_id": self.account_id,
            "environment": self.environment or settings.METRICS_ENVIRONMENT,
        }
        base.update(self.extra)
        return base


class MonitoringBackend:
    """
    Abstract monitoring backend.

    Override emit() to send signals to your preferred monitoring system.
    """

    def emit(
        self,
        signal_name: str,
        tags: SignalTags,
        value: float | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        raise NotImplementedError


class LoggingBackend(MonitoringBackend):
    """Default backend: structured logging."""

    def emit(
        self,
        signal_name: str,
        tags: SignalTags,
        value: float | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        data = {
            "signal": signal_name,
            "value": value,
            **tags.to_dict(),
            **(extra or {}),
        }
        logger.info(f"[SIGNAL] {signal_name}", extra={"signal_data": data})


class StatsdBackend(MonitoringBackend):
    """StatsD backend for metrics collection."""

    def __init__(self, host: str = "localhost", port: int = 8125, prefix: str = "incident_relay"):
        self.client = statsd.StatsClient(host, port, prefix=prefix)

    def emit(
        self,
        signal_name: str,
        tags: SignalTags,
        value: float | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        # Format: prefix.signal_name.stage.source
        metric_name = f"{signal_name}.{tags.stage}.{tags.source}"

        if value is not None:
            if "duration" in signal_name:
                self.client.timing(metric_name, value)
            else:
                self.client.gauge(metric_name, value)
        else:
            self.client.incr(metric_name)


def get_monitoring_backend() -> MonitoringBackend:
    """Get configured monitoring backend."""
    if settings.METRICS_BACKEND == "statsd":
        return StatsdBackend(
            host=settings.STATSD_HOST,
            port=settings.STATSD_PORT,
            prefix=settings.STATSD_PREFIX,
        )
    return LoggingBackend()


# Global backend instance (lazy initialized)
_backend: MonitoringBackend | None = None


def _get_backend() -> MonitoringBackend:
    global _backend
    if _backend is None:
        _backend = get_monitoring_backend()
    return _backend


def reset_backend() -> None:
    """Drop the cached backend so the next signal re-reads settings."""
    global _backend
    _backend = None


def emit(signal_name: str, tags: SignalTags, value: float | None = None, **extra: Any) -> None:
    """Emit a signal, never letting a metrics failure break the caller."""
    try:
        _get_backend().emit(signal_name, tags, value=value, extra=extra or None)
    except OSError as e:
        logger.warning("Failed to emit %s: %s", signal_name, e)
