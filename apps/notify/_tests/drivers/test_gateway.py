"""Tests for GatewayPushDriver."""

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

from django.test import SimpleTestCase, override_settings

from apps.notify.drivers import PushNotification
from apps.notify.drivers.gateway import GatewayPushDriver

CONFIG = {"endpoint": "https://push.example.com/send", "api_key": "secret"}


def _response(body=b'{"id": "m-1"}', code=200):
    response = MagicMock()
    response.read.return_value = body
    response.getcode.return_value = code
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


def _http_error(code, body=b"error"):
    return urllib.error.HTTPError(
        "https://push.example.com/send", code, "err", {}, io.BytesIO(body)
    )


class GatewayValidateConfigTests(SimpleTestCase):
    def test_requires_http_endpoint(self):
        driver = GatewayPushDriver()
        self.assertFalse(driver.validate_config({}))
        self.assertFalse(driver.validate_config({"endpoint": "ftp://x"}))
        self.assertTrue(driver.validate_config(CONFIG))

    def test_invalid_config_is_not_retryable(self):
        result = GatewayPushDriver().send("tok", "ios", PushNotification("t", "b"), {})
        self.assertFalse(result["success"])
        self.assertFalse(result["retryable"])


@override_settings(PUSH_TIMEOUT_SECONDS=3)
class GatewaySendTests(SimpleTestCase):
    def setUp(self):
        self.driver = GatewayPushDriver()
        self.push = PushNotification(title="t", body="b", badge=1)

    @patch("apps.notify.drivers.gateway.urllib.request.urlopen")
    def test_success_posts_encoded_payload(self, mock_urlopen):
        mock_urlopen.return_value = _response()

        result = self.driver.send("tok", "ios", self.push, CONFIG)

        self.assertTrue(result["success"])
        self.assertEqual(result["message_id"], "m-1")
        request = mock_urlopen.call_args.args[0]
        self.assertEqual(mock_urlopen.call_args.kwargs["timeout"], 3)
        self.assertEqual(request.get_header("Authorization"), "Bearer secret")
        body = json.loads(request.data)
        self.assertEqual(body["token"], "tok")
        self.assertEqual(body["platform"], "ios")
        self.assertEqual(body["payload"]["aps"]["badge"], 1)

    @patch("apps.notify.drivers.gateway.urllib.request.urlopen")
    def test_gone_token_is_unregistered(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(410)

        result = self.driver.send("tok", "ios", self.push, CONFIG)

        self.assertFalse(result["success"])
        self.assertTrue(result["unregistered"])
        self.assertFalse(result["retryable"])

    @patch("apps.notify.drivers.gateway.urllib.request.urlopen")
    def test_server_error_is_retryable(self, mock_urlopen):
        mock_urlopen.side_effect = _http_error(503)

        result = self.driver.send("tok", "ios", self.push, CONFIG)

        self.assertTrue(result["retryable"])
        self.assertFalse(result["unregistered"])

    @patch("apps.notify.drivers.gateway.urllib.request.urlopen")
    def test_connection_error_is_retryable(self, mock_urlopen):
        mock_urlopen.side_effect = urllib.error.URLError("refused")

        result = self.driver.send("tok", "android", self.push, CONFIG)

        self.assertFalse(result["success"])
        self.assertTrue(result["retryable"])

    @patch("apps.notify.drivers.gateway.urllib.request.urlopen")
    def test_timeout_is_retryable(self, mock_urlopen):
        mock_urlopen.side_effect = TimeoutError()

        result = self.driver.send("tok", "web", self.push, CONFIG)

        self.assertEqual(result["error"], "Push gateway timed out")
        self.assertTrue(result["retryable"])
