"""
CloudWatch alarm driver.

Handles CloudWatch alarm state changes delivered through Amazon SNS.
See: https://docs.aws.amazon.com/AmazonCloudWatch/latest/monitoring/AlarmThatSendsEmail.html
"""

import json
import logging
from typing import Any

from apps.alerts.drivers.base import BaseAlarmDriver, ParsedAlarm, ParsedPayload

logger = logging.getLogger(__name__)

SNS_CONTROL_TYPES = ("SubscriptionConfirmation", "UnsubscribeConfirmation")


class CloudWatchDriver(BaseAlarmDriver):
    """
    Driver for CloudWatch alarms.

    Accepts three shapes:

    An SNS HTTP(S) subscription delivery:
    {
        "Type": "Notification",
        "MessageId": "...",
        "TopicArn": "arn:aws:sns:...",
        "Message": "{\\"AlarmName\\": \\"...\\", ...}"
    }

    An SNS event as handed to a function subscriber:
    {
        "Records": [{"Sns": {"Message": "{...}"}}]
    }

    Or the bare alarm message:
    {
        "AlarmName": "HighCPU-critical",
        "AlarmArn": "arn:aws:cloudwatch:...",
        "NewStateValue": "ALARM",
        "NewStateReason": "Threshold Crossed: ...",
        "StateChangeTime": "2024-01-08T10:30:00.000+0000",
        "Region": "US East (N. Virginia)",
        "AWSAccountId": "123456789012"
    }
    """

    name = "cloudwatch"

    def validate(self, payload: dict[str, Any]) -> bool:
        """Check if this looks like a CloudWatch or SNS payload."""
        if "AlarmName" in payload and "NewStateValue" in payload:
            return True
        if "TopicArn" in payload and "Type" in payload:
            return True
        records = payload.get("Records")
        if isinstance(records, list) and records:
            return all(isinstance(r, dict) and "Sns" in r for r in records)
        return False

    def parse(self, payload: dict[str, Any]) -> ParsedPayload:
        """Parse a CloudWatch/SNS payload."""
        if not self.validate(payload):
            raise ValueError("Invalid CloudWatch payload")

        # SNS subscription handshakes carry no alarm
        message_type = payload.get("Type", "")
        if message_type in SNS_CONTROL_TYPES:
            logger.info(
                "Received SNS %s for %s (subscribe URL: %s)",
                message_type,
                payload.get("TopicArn", ""),
                payload.get("SubscribeURL", ""),
            )
            return ParsedPayload(
                alarms=[], source=self.name, control_message=message_type, raw_payload=payload
            )

        if "Records" in payload:
            if not all(isinstance(record["Sns"], dict) for record in payload["Records"]):
                raise ValueError("SNS record must be a JSON object")
            messages = [record["Sns"].get("Message", "") for record in payload["Records"]]
        elif "Message" in payload:
            messages = [payload["Message"]]
        else:
            messages = [payload]

        alarms = [self._parse_alarm(self._decode_message(m)) for m in messages]
        return ParsedPayload(alarms=alarms, source=self.name, raw_payload=payload)

    def _decode_message(self, message: Any) -> dict[str, Any]:
        if isinstance(message, dict):
            return message
        try:
            decoded = json.loads(message)
        except (TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"SNS message is not a CloudWatch alarm: {e}") from e
        if not isinstance(decoded, dict):
            raise ValueError("SNS message is not a CloudWatch alarm")
        return decoded

    def _parse_alarm(self, message: dict[str, Any]) -> ParsedAlarm:
        alarm_name = message.get("AlarmName")
        if not alarm_name:
            raise ValueError("CloudWatch alarm is missing AlarmName")

        return ParsedAlarm(
            alarm_name=alarm_name,
            alarm_ref=message.get("AlarmArn", ""),
            new_state=message.get("NewStateValue", ""),
            reason=message.get("NewStateReason", ""),
            account_id=message.get("AWSAccountId", ""),
            changed_at=self.parse_timestamp(message.get("StateChangeTime")),
            raw_payload=message,
        )
