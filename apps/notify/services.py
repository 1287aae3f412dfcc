"""Push dispatch services.

PushDispatcher fans one notification out to every device a responder has
registered. Each device is independent: a failure on one never stops the
others, each gets at most PUSH_MAX_ATTEMPTS tries, and a token the transport
reports as unregistered is removed.
"""

from __future__ import annotations

import http.client
import logging
from dataclasses import dataclass, field
from typing import Any

from django.conf import settings

from apps.alerts import monitoring
from apps.alerts.monitoring import SignalTags
from apps.notify.drivers import BasePushDriver, PushNotification, get_driver
from apps.notify.models import Device

logger = logging.getLogger(__name__)


@dataclass
class DispatchResult:
    """Outcome of pushing one notification to one responder."""

    recipient: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    pruned: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "pruned": self.pruned,
            "errors": self.errors,
        }


def devices_for(user_id: str) -> list[Device]:
    return list(Device.objects.filter(user_id=user_id).order_by("created_at"))


class PushDispatcher:
    """
    Sends push notifications through the configured driver.

    Usage:
        dispatcher = PushDispatcher()
        result = dispatcher.send_to_user("alice", notification)
    """

    def __init__(
        self,
        driver: str | BasePushDriver | None = None,
        config: dict[str, Any] | None = None,
        max_attempts: int | None = None,
    ):
        if isinstance(driver, BasePushDriver):
            self.driver = driver
        else:
            self.driver = get_driver(driver or settings.PUSH_DRIVER)
        self.config = config if config is not None else settings.PUSH_CONFIG
        self.max_attempts = max(1, max_attempts or settings.PUSH_MAX_ATTEMPTS)

    def send_to_user(
        self,
        user_id: str,
        notification: PushNotification,
        tags: SignalTags | None = None,
    ) -> DispatchResult:
        result = DispatchResult(recipient=user_id)
        tags = tags or SignalTags(stage="notify")
        tags.source = self.driver.name

        devices = devices_for(user_id)
        if not devices:
            logger.info("No devices registered for %s; skipping push", user_id)
            return result

        for device in devices:
            result.attempted += 1
            outcome = self.send_to_device(device, notification)
            if outcome.get("success"):
                result.succeeded += 1
                monitoring.emit("push.sent", tags, platform=device.platform)
                continue

            result.failed += 1
            result.errors.append(outcome.get("error", "unknown error"))
            monitoring.emit("push.failed", tags, platform=device.platform)
            if outcome.get("unregistered"):
                self.prune(device)
                result.pruned += 1
                monitoring.emit("push.device_pruned", tags, platform=device.platform)

        logger.info(
            "Pushed to %s: %d/%d device(s) succeeded",
            user_id,
            result.succeeded,
            result.attempted,
        )
        return result

    def send_to_device(self, device: Device, notification: PushNotification) -> dict[str, Any]:
        """Send to one device with a bounded number of attempts."""
        outcome: dict[str, Any] = {"success": False, "error": "not attempted"}
        for attempt in range(1, self.max_attempts + 1):
            try:
                outcome = self.driver.send(device.token, device.platform, notification, self.config)
            except (OSError, http.client.HTTPException, ValueError) as e:
                outcome = {
                    "success": False,
                    "error": f"{type(e).__name__}: {e}",
                    "unregistered": False,
                    "retryable": True,
                }
            if outcome.get("success"):
                return outcome
            if outcome.get("unregistered") or not outcome.get("retryable", True):
                break
            logger.warning(
                "Push attempt %d/%d to %s device of %s failed: %s",
                attempt,
                self.max_attempts,
                device.platform,
                device.user_id,
                outcome.get("error"),
            )
        return outcome

    def prune(self, device: Device) -> None:
        logger.info("Removing unregistered %s device of %s", device.platform, device.user_id)
        Device.objects.filter(pk=device.pk).delete()


class DeviceService:
    """Device registration for the caller."""

    def register(self, user_id: str, token: str, platform: str) -> tuple[Device, bool]:
        device, created = Device.objects.update_or_create(
            user_id=user_id,
            token=token,
            defaults={"platform": platform},
        )
        logger.info(
            "%s %s device for %s", "Registered" if created else "Refreshed", platform, user_id
        )
        return device, created

    def unregister(self, user_id: str, token: str) -> bool:
        deleted, _ = Device.objects.filter(user_id=user_id, token=token).delete()
        return bool(deleted)
