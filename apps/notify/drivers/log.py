"""Logging push driver for development: records the push instead of sending it."""

import json
import logging
import uuid
from typing import Any

from apps.notify.drivers.base import BasePushDriver, PushNotification

logger = logging.getLogger(__name__)


class LogPushDriver(BasePushDriver):
    """Writes the encoded payload to the log and always succeeds."""

    name = "log"

    def validate_config(self, config: dict[str, Any]) -> bool:
        return True

    def send(
        self,
        token: str,
        platform: str,
        notification: PushNotification,
        config: dict[str, Any],
    ) -> dict[str, Any]:
        payload = self.encode(platform, notification)
        logger.info(
            "Push to %s device %s...: %s",
            platform,
            token[:12],
            json.dumps(payload, ensure_ascii=False, default=str),
        )
        return {"success": True, "message_id": f"log_{uuid.uuid4().hex[:12]}"}
