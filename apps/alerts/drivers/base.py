"""Base driver and data structures for alarm ingestion.

Drivers normalize incoming alarm payloads from different sources
(CloudWatch via SNS, generic JSON) into a common internal format.

Public API:
- ParsedAlarm
- ParsedPayload
- BaseAlarmDriver
- severity_from_name
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from datetime import timezone as dt_tz
from typing import Any

from django.utils import timezone
from django.utils.dateparse import parse_datetime

ALARM_STATES = ("ALARM", "OK", "INSUFFICIENT_DATA")
SEVERITIES = ("critical", "warning", "info")


def severity_from_name(alarm_name: str) -> str:
    """Derive a severity from keywords in the alarm name."""
    name = (alarm_name or "").lower()
    if "critical" in name or "error" in name:
        return "critical"
    if "warning" in name or "warn" in name:
        return "warning"
    return "info"


@dataclass
class ParsedAlarm:
    """Standardized alarm state change that all drivers produce."""

    # Required fields
    alarm_name: str
    new_state: str  # "ALARM", "OK" or "INSUFFICIENT_DATA"
    account_id: str

    # Optional fields with defaults
    alarm_ref: str = ""
    reason: str = ""
    severity: str = ""
    changed_at: datetime | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize fields after initialization.

        Raises:
            ValueError: if a text field carries a non-string value.
        """
        for name in ("alarm_name", "new_state", "alarm_ref", "reason", "severity"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{name} must be a string, got {type(value).__name__}")

        self.new_state = (self.new_state or "").upper()
        if self.new_state not in ALARM_STATES:
            self.new_state = "INSUFFICIENT_DATA"

        self.account_id = str(self.account_id or "").strip()

        self.severity = (self.severity or "").lower()
        if self.severity not in SEVERITIES:
            self.severity = severity_from_name(self.alarm_name)

    @property
    def is_alarm(self) -> bool:
        return self.new_state == "ALARM"


@dataclass
class ParsedPayload:
    """Result of parsing an incoming webhook payload."""

    alarms: list[ParsedAlarm]
    source: str

    # Set for envelopes that carry no alarm (e.g. SNS subscription handshakes).
    control_message: str = ""
    raw_payload: dict[str, Any] = field(default_factory=dict)


class BaseAlarmDriver(ABC):
    """Abstract base class for alarm source drivers."""

    name: str = "base"

    @abstractmethod
    def validate(self, payload: dict[str, Any]) -> bool:
        """Validate that a payload is from this source and can be parsed."""

    @abstractmethod
    def parse(self, payload: dict[str, Any]) -> ParsedPayload:
        """Parse an incoming webhook payload into a ParsedPayload."""

    def parse_timestamp(self, timestamp: Any) -> datetime:
        """Parse timestamp from various formats, defaulting to now."""
        if not timestamp:
            return timezone.now()

        # Already a datetime
        if isinstance(timestamp, datetime):
            return timestamp

        # Unix timestamp (int or float)
        if isinstance(timestamp, (int, float)):
            try:
                # Handle milliseconds
                if timestamp > 1e12:
                    timestamp = timestamp / 1000
                return datetime.fromtimestamp(timestamp, tz=dt_tz.utc)
            except (ValueError, OSError):
                return timezone.now()

        if isinstance(timestamp, str):
            # CloudWatch sends "2024-01-08T10:30:00.000+0000"
            try:
                parsed = parse_datetime(timestamp.replace("+0000", "+00:00"))
            except ValueError:
                parsed = None
            if parsed:
                return parsed

        return timezone.now()
