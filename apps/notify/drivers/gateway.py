"""Push relay driver: POSTs the platform-encoded payload to an HTTP push gateway."""

import json
import logging
import urllib.error
import urllib.request
from typing import Any

from django.conf import settings

from apps.notify.drivers.base import BasePushDriver, PushNotification

logger = logging.getLogger(__name__)


class GatewayPushDriver(BasePushDriver):
    """
    Driver for an HTTP push relay.

    Config:
        endpoint: relay URL (required)
        api_key: sent as a bearer token (optional)
        headers: extra request headers (optional)

    The relay receives {"token", "platform", "payload"} and answers 404/410
    for tokens the platform no longer accepts.
    """

    name = "gateway"

    def validate_config(self, config: dict[str, Any]) -> bool:
        url = (config or {}).get("endpoint", "")
        return url.startswith("http://") or url.startswith("https://")

    def send(
        self,
        token: str,
        platform: str,
        notification: PushNotification,
        config: dict[str, Any],
    ) -> dict[str, Any]:
        if not self.validate_config(config):
            return {
                "success": False,
                "error": "Invalid configuration (endpoint required)",
                "retryable": False,
            }

        endpoint = config["endpoint"]
        body = {
            "token": token,
            "platform": platform,
            "payload": self.encode(platform, notification),
        }
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "IncidentRelay/1.0",
        }
        if config.get("api_key"):
            headers["Authorization"] = f"Bearer {config['api_key']}"
        headers.update(config.get("headers", {}))

        request = urllib.request.Request(
            endpoint,
            data=json.dumps(body).encode("utf-8"),
            headers=headers,
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=settings.PUSH_TIMEOUT_SECONDS) as response:
                response_data = self._parse_response(response.read().decode("utf-8"))
                logger.info(f"Push relayed to {platform} device via {endpoint}: {response.getcode()}")
                return {
                    "success": True,
                    "message_id": str(response_data.get("id", "")),
                    "metadata": {"status_code": response.getcode(), "response": response_data},
                }
        except urllib.error.HTTPError as e:
            return self._handle_http_error(e, "Push gateway")
        except urllib.error.URLError as e:
            return self._handle_url_error(e, "Push gateway")
        except TimeoutError:
            logger.error(f"Push gateway timed out after {settings.PUSH_TIMEOUT_SECONDS}s")
            return {"success": False, "error": "Push gateway timed out", "retryable": True}
