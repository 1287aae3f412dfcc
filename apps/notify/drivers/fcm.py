"""Firebase Cloud Messaging (HTTP v1) driver.

See: https://firebase.google.com/docs/reference/fcm/rest/v1/projects.messages/send
"""

import json
import logging
import urllib.error
import urllib.request
from typing import Any

from django.conf import settings

from apps.notify.drivers.base import BasePushDriver, PushNotification

logger = logging.getLogger(__name__)

FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"


class FcmPushDriver(BasePushDriver):
    """
    Driver for FCM HTTP v1.

    Config:
        project_id: Firebase project id (required)
        access_token: OAuth2 bearer token for the messaging scope (required)

    iOS devices are addressed through the apns override, browsers through the
    webpush override, so one transport covers every platform.
    """

    name = "fcm"

    def validate_config(self, config: dict[str, Any]) -> bool:
        config = config or {}
        return bool(config.get("project_id") and config.get("access_token"))

    def build_message(self, token: str, platform: str, notification: PushNotification) -> dict:
        message: dict[str, Any] = {
            "token": token,
            "notification": {"title": notification.title, "body": notification.body},
            "data": {k: "" if v is None else str(v) for k, v in notification.data.items()},
        }
        if platform == "ios":
            message["apns"] = {"payload": self.apns_payload(notification)}
        elif platform == "android":
            android = self.android_payload(notification)
            message["android"] = {
                "priority": android["priority"].upper(),
                "notification": {
                    key: value
                    for key, value in android["notification"].items()
                    if key not in ("title", "body")
                },
            }
        else:
            message["webpush"] = self.webpush_payload(notification)
        return {"message": message}

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
                "error": "Invalid configuration (project_id and access_token required)",
                "retryable": False,
            }

        url = FCM_SEND_URL.format(project_id=config["project_id"])
        request = urllib.request.Request(
            url,
            data=json.dumps(self.build_message(token, platform, notification)).encode("utf-8"),
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {config['access_token']}",
            },
            method="POST",
        )

        try:
            with urllib.request.urlopen(request, timeout=settings.PUSH_TIMEOUT_SECONDS) as response:
                response_data = self._parse_response(response.read().decode("utf-8"))
                return {"success": True, "message_id": response_data.get("name", "")}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else str(e)
            logger.error(f"FCM HTTP error {e.code}: {error_body}")
            return {
                "success": False,
                "error": f"FCM API error ({e.code}): {error_body}",
                "unregistered": self._is_unregistered(e.code, error_body),
                "retryable": e.code == 429 or e.code >= 500,
            }
        except urllib.error.URLError as e:
            return self._handle_url_error(e, "FCM")
        except TimeoutError:
            logger.error(f"FCM timed out after {settings.PUSH_TIMEOUT_SECONDS}s")
            return {"success": False, "error": "FCM timed out", "retryable": True}

    def _is_unregistered(self, status_code: int, error_body: str) -> bool:
        details = self._parse_response(error_body).get("error", {})
        if not isinstance(details, dict):
            return False
        for detail in details.get("details", []) or []:
            if isinstance(detail, dict) and detail.get("errorCode") == "UNREGISTERED":
                return True
        return status_code == 404 and details.get("status") == "NOT_FOUND"
