"""Tests for FcmPushDriver."""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase

from apps.notify.drivers import PushNotification
from apps.notify.drivers.fcm import FcmPushDriver

CONFIG = {"project_id": "relay-prod", "access_token": "ya29.token"}


def _http_error(code, payload):
    return urllib.error.HTTPError(
        "https://fcm.googleapis.com", code, "err", {}, io.BytesIO(json.dumps(payload).encode())
    )


class FcmBuildMessageTests(SimpleTestCase):
    def setUp(self):
        self.driver = FcmPushDriver()
        self.push = PushNotification(
            title="t", body="b", interruption_level="critical", badge=4, data={"incident_id": "abc"}
        )

    def test_ios_uses_apns_override(self):
        message = self.driver.build_message("tok", "ios", self.push)["message"]
        self.assertEqual(message["token"], "tok")
        self.assertEqual(message["apns"]["payload"]["aps"]["badge"], 4)
        self.assertNotIn("android", message)

    def test_android_priority(self):
        message = self.driver.build_message("tok", "android", self.push)["message"]
        self.assertEqual(message["android"]["priority"], "HIGH")
        self.assertNotIn("title", message["android"]["notification"])
        self.assertEqual(message["data"], {"incident_id": "abc"})

    def test_web_uses_webpush_override(self):
        message = self.driver.build_message("tok", "web", self.push)["message"]
        self.assertIn("webpush", message)


class FcmSendTests(SimpleTestCase):
    def setUp(self):
        self.driver = FcmPushDriver()
        self.push = PushNotification(title="t", body="b")

    def test_requires_config(self):
        self.assertFalse(self.driver.validate_config({"project_id": "x"}))
        self.assertFalse(self.driver.send("tok", "ios", self.push, {})["success"])

    @patch("apps.notify.drivers.fcm.urllib.request.urlopen")
    def test_success(self, mock_urlopen):
        response = MagicMock()
        response.read.return_value = b'{"name": "projects/relay-prod/messages/1"}'
        response.__enter__.return_value = response
        mock_urlopen.return_value = response

        result = self.driver.send("tok", "android", self.push, CONFIG)

        self.assertTrue(result["success"])
        self.assertEqual(result["message_id"], "projects/relay-prod/messages/1")
        request = mock_urlopen.call_args.args[0]
        self.assertIn("/projects/relay-prod/messages:send", request.full_url)

    @patch("apps.notify.drivers.fcm.urllib.request.urlopen")
    def test_unregistered_error_code(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(
            404,
            {
                "error": {
                    "status": "NOT_FOUND",
                    "details": [{"errorCode": "UNREGISTERED"}],
                }
            },
        )

        result = self.driver.send("tok", "android", self.push, CONFIG)

        self.assertTrue(result["unregistered"])

    @patch("apps.notify.drivers.fcm.urllib.request.urlopen")
    def test_quota_error_is_retryable(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(429, {"error": {"status": "RESOURCE_EXHAUSTED"}})

        result = self.driver.send("tok", "android", self.push, CONFIG)

        self.assertFalse(result["unregistered"])
        self.assertTrue(result["retryable"])
