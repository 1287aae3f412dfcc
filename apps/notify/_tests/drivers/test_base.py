"""Tests for platform payload encoding shared by every push driver."""

from django.test import SimpleTestCase

from apps.notify.drivers import PushNotification
from apps.notify.drivers.log import LogPushDriver


def _make_push(**kwargs):
    defaults = {
        "title": "\U0001F534 CRITICAL: HighCPU",
        "body": "CPU above 90%",
        "sound": "critical_alarm.caf",
        "interruption_level": "critical",
        "badge": 2,
        "data": {"incident_id": "abc", "severity": "critical", "extra": None},
    }
    defaults.update(kwargs)
    return PushNotification(**defaults)


class PushNotificationTests(SimpleTestCase):
    def test_unknown_interruption_level_becomes_active(self):
        self.assertEqual(_make_push(interruption_level="loud").interruption_level, "active")


class EncodeTests(SimpleTestCase):
    def setUp(self):
        self.driver = LogPushDriver()

    def test_ios_payload(self):
        payload = self.driver.encode("ios", _make_push())

        self.assertEqual(payload["aps"]["alert"], {"title": "\U0001F534 CRITICAL: HighCPU", "body": "CPU above 90%"})
        self.assertEqual(payload["aps"]["sound"], "critical_alarm.caf")
        self.assertEqual(payload["aps"]["interruption-level"], "critical")
        self.assertEqual(payload["aps"]["badge"], 2)
        self.assertEqual(payload["aps"]["category"], "INCIDENT_ACTIONS")
        self.assertEqual(payload["incident_id"], "abc")

    def test_ios_payload_without_badge(self):
        payload = self.driver.encode("ios", _make_push(badge=None))
        self.assertNotIn("badge", payload["aps"])

    def test_android_payload(self):
        payload = self.driver.encode("android", _make_push(interruption_level="passive"))

        self.assertEqual(payload["priority"], "normal")
        self.assertEqual(payload["notification"]["notification_count"], 2)
        self.assertEqual(payload["data"]["extra"], "")
        self.assertEqual(payload["data"]["severity"], "critical")

    def test_web_payload(self):
        payload = self.driver.encode("web", _make_push())

        self.assertTrue(payload["notification"]["requireInteraction"])
        self.assertEqual(payload["badge"], 2)

    def test_log_driver_always_succeeds(self):
        result = self.driver.send("token-123456789", "ios", _make_push(), {})
        self.assertTrue(result["success"])
        self.assertTrue(result["message_id"].startswith("log_"))
