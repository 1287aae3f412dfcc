"""
Generic webhook driver.

Handles alarms from custom sources that follow a simple format.
This serves as a fallback and a template for custom integrations.
"""

from typing import Any

from apps.alerts.drivers.base import BaseAlarmDriver, ParsedAlarm, ParsedPayload


class GenericWebhookDriver(BaseAlarmDriver):
    """
    Driver for generic webhook alarms.

    Accepts a flexible format for custom integrations:
    {
        "alarms": [
            {
                "alarm_name": "DiskFull-warning",
                "alarm_ref": "my-monitor/disk/42",
                "state": "ALARM",
                "reason": "Disk usage above 90%",
                "account_id": "111",
                "severity": "warning",
                "timestamp": "2024-01-08T10:30:00Z"
            }
        ],
        "source": "my-custom-system"
    }

    Or a single alarm:
    {
        "alarm_name": "DiskFull-warning",
        "state": "ALARM",
        ...
    }
    """

    name = "generic"

    def validate(self, payload: dict[str, Any]) -> bool:
        """
        Generic driver accepts most payloads as a fallback.

        Validates that either:
        - There's an "alarms" list, or
        - There's a name field for a single alarm
        """
        has_alarms = "alarms" in payload and isinstance(payload["alarms"], list)
        has_name = "alarm_name" in payload or "name" in payload
        return has_alarms or has_name

    def parse(self, payload: dict[str, Any]) -> ParsedPayload:
        """Parse generic webhook payload."""
        if "alarms" in payload and isinstance(payload["alarms"], list):
            alarms = [self._parse_alarm(a, payload) for a in payload["alarms"]]
        else:
            alarms = [self._parse_alarm(payload, payload)]

        return ParsedPayload(
            alarms=alarms,
            source=payload.get("source", self.name),
            raw_payload=payload,
        )

    def _parse_alarm(self, data: dict[str, Any], envelope: dict[str, Any]) -> ParsedAlarm:
        if not isinstance(data, dict):
            raise ValueError("Each alarm must be a JSON object")

        name = data.get("alarm_name") or data.get("name")
        if not name:
            raise ValueError("Alarm is missing alarm_name")

        # Accept firing/resolved conventions alongside ALARM/OK
        state = data.get("state") or data.get("status") or "ALARM"
        if not isinstance(state, str):
            raise ValueError("Alarm state must be a string")
        state = state.upper()
        if state in ("FIRING", "TRIGGERED"):
            state = "ALARM"
        elif state in ("RESOLVED", "NORMAL"):
            state = "OK"

        return ParsedAlarm(
            alarm_name=name,
            alarm_ref=data.get("alarm_ref") or data.get("alarm_arn") or "",
            new_state=state,
            reason=data.get("reason") or data.get("description") or "",
            account_id=data.get("account_id") or envelope.get("account_id") or "",
            severity=data.get("severity") or "",
            changed_at=self.parse_timestamp(data.get("timestamp") or data.get("changed_at")),
            raw_payload=data,
        )
