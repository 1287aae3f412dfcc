"""Base driver and data structures for push delivery.

Drivers hand an abstract notification to a push transport and normalize the
result. Platform wire formats (APNs-style for iOS, FCM-style for Android, web
push for browsers) are built here so every transport encodes them the same way.

Public API:
- PushNotification
- BasePushDriver
"""

from __future__ import annotations

import json
import logging
import urllib.error
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# HTTP answers meaning the token will never work again.
UNREGISTERED_STATUS_CODES = (404, 410)


@dataclass
class PushNotification:
    """Abstract push content produced by the change notifier."""

    # Required fields
    title: str
    body: str

    # Optional fields with defaults
    sound: str = "default"
    interruption_level: str = "active"  # passive, active, time-sensitive, critical
    badge: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
    category: str = "INCIDENT_ACTIONS"

    def __post_init__(self) -> None:
        """Normalize fields after initialization."""
        if self.interruption_level not in ("passive", "active", "time-sensitive", "critical"):
            self.interruption_level = "active"
        self.data = {str(k): v for k, v in (self.data or {}).items()}


class BasePushDriver(ABC):
    """Abstract base class for push delivery drivers."""

    name: str = "base"

    # Android notification priority per interruption level
    ANDROID_PRIORITY = {
        "passive": "normal",
        "active": "high",
        "time-sensitive": "high",
        "critical": "high",
    }

    @abstractmethod
    def validate_config(self, config: dict[str, Any]) -> bool:
        """Validate that the driver configuration is valid."""

    @abstractmethod
    def send(
        self,
        token: str,
        platform: str,
        notification: PushNotification,
        config: dict[str, Any],
    ) -> dict[str, Any]:
        """Send one push and return result metadata.

        Returns:
            Dictionary with keys:
            - success: bool
            - message_id: str (if available)
            - error: str (if failed)
            - unregistered: bool (token is permanently invalid)
            - retryable: bool (a later attempt may succeed)
        """

    def encode(self, platform: str, notification: PushNotification) -> dict[str, Any]:
        """Build the platform wire payload for a notification."""
        if platform == "ios":
            return self.apns_payload(notification)
        if platform == "android":
            return self.android_payload(notification)
        return self.webpush_payload(notification)

    def apns_payload(self, notification: PushNotification) -> dict[str, Any]:
        aps: dict[str, Any] = {
            "alert": {"title": notification.title, "body": notification.body},
            "sound": notification.sound,
            "interruption-level": notification.interruption_level,
            "category": notification.category,
        }
        if notification.badge is not None:
            aps["badge"] = notification.badge
        return {"aps": aps, **notification.data}

    def android_payload(self, notification: PushNotification) -> dict[str, Any]:
        android_notification: dict[str, Any] = {
            "title": notification.title,
            "body": notification.body,
            "sound": notification.sound,
            "click_action": notification.category,
        }
        if notification.badge is not None:
            android_notification["notification_count"] = notification.badge
        return {
            "priority": self.ANDROID_PRIORITY[notification.interruption_level],
            "notification": android_notification,
            # FCM data values must be strings
            "data": {k: "" if v is None else str(v) for k, v in notification.data.items()},
        }

    def webpush_payload(self, notification: PushNotification) -> dict[str, Any]:
        return {
            "notification": {
                "title": notification.title,
                "body": notification.body,
                "requireInteraction": notification.interruption_level == "critical",
                "data": notification.data,
            },
            "badge": notification.badge,
        }

    def _handle_http_error(self, e: urllib.error.HTTPError, service_name: str) -> dict[str, Any]:
        """Handle HTTP errors consistently across drivers."""
        error_body = e.read().decode("utf-8") if e.fp else str(e)
        logger.error(f"{service_name} HTTP error {e.code}: {error_body}")
        return {
            "success": False,
            "error": f"{service_name} API error ({e.code}): {error_body}",
            "unregistered": e.code in UNREGISTERED_STATUS_CODES,
            "retryable": e.code == 429 or e.code >= 500,
        }

    def _handle_url_error(self, e: urllib.error.URLError, service_name: str) -> dict[str, Any]:
        """Handle connection errors and timeouts consistently across drivers."""
        logger.error(f"{service_name} URL error: {e.reason}")
        return {
            "success": False,
            "error": f"Failed to connect to {service_name}: {e.reason}",
            "unregistered": False,
            "retryable": True,
        }

    def _parse_response(self, body: str) -> dict[str, Any]:
        try:
            data = json.loads(body) if body else {}
        except json.JSONDecodeError:
            return {"raw": body}
        return data if isinstance(data, dict) else {"raw": data}
