from django.test import TestCase, override_settings

from apps.notify._tests.fakes import RecordingPushDriver
from apps.notify.drivers import PushNotification
from apps.notify.drivers.log import LogPushDriver
from apps.notify.models import Device
from apps.notify.services import DeviceService, PushDispatcher


class PushDispatcherTests(TestCase):
    def setUp(self):
        self.notification = PushNotification(title="t", body="b")

    def test_uses_configured_driver(self):
        with override_settings(PUSH_DRIVER="log", PUSH_CONFIG={}):
            dispatcher = PushDispatcher()
        self.assertIsInstance(dispatcher.driver, LogPushDriver)

    def test_unknown_driver_name_raises(self):
        with self.assertRaises(ValueError):
            PushDispatcher(driver="carrier-pigeon")

    def test_no_devices(self):
        driver = RecordingPushDriver()

        result = PushDispatcher(driver=driver, config={}).send_to_user("nobody", self.notification)

        self.assertEqual(result.attempted, 0)
        self.assertEqual(driver.sent, [])

    def test_non_retryable_failure_is_not_retried(self):
        Device.objects.create(user_id="alice", token="t1", platform="web")
        driver = RecordingPushDriver({"t1": [{"success": False, "error": "bad", "retryable": False}]})

        result = PushDispatcher(driver=driver, config={}, max_attempts=3).send_to_user(
            "alice", self.notification
        )

        self.assertEqual(result.failed, 1)
        self.assertEqual(result.errors, ["bad"])
        self.assertEqual(len(driver.sent), 1)
        self.assertTrue(Device.objects.filter(token="t1").exists())

    def test_attempts_are_bounded(self):
        Device.objects.create(user_id="alice", token="t1", platform="web")
        failure = {"success": False, "error": "503", "retryable": True}
        driver = RecordingPushDriver({"t1": [failure] * 5})

        PushDispatcher(driver=driver, config={}, max_attempts=3).send_to_user(
            "alice", self.notification
        )

        self.assertEqual(len(driver.sent), 3)

    def test_transport_exception_does_not_block_other_devices(self):
        Device.objects.create(user_id="alice", token="alice-phone", platform="ios")
        Device.objects.create(user_id="alice", token="alice-tablet", platform="android")
        driver = RecordingPushDriver({"alice-phone": [ConnectionResetError("reset by peer")] * 2})

        result = PushDispatcher(driver=driver, config={}, max_attempts=2).send_to_user(
            "alice", self.notification
        )

        self.assertEqual(driver.tokens(), ["alice-phone", "alice-phone", "alice-tablet"])
        self.assertEqual((result.attempted, result.succeeded, result.failed), (2, 1, 1))
        self.assertIn("ConnectionResetError", result.errors[0])
        self.assertEqual(Device.objects.count(), 2)

    def test_counts_pruned_devices(self):
        Device.objects.create(user_id="alice", token="gone", platform="ios")
        driver = RecordingPushDriver({"gone": [{"success": False, "error": "410", "unregistered": True}]})

        result = PushDispatcher(driver=driver, config={}).send_to_user("alice", self.notification)

        self.assertEqual(result.pruned, 1)
        self.assertFalse(Device.objects.exists())


class DeviceServiceTests(TestCase):
    def test_register_is_idempotent(self):
        service = DeviceService()

        _, created = service.register("alice", "tok", "ios")
        device, created_again = service.register("alice", "tok", "android")

        self.assertTrue(created)
        self.assertFalse(created_again)
        self.assertEqual(device.platform, "android")
        self.assertEqual(Device.objects.count(), 1)

    def test_unregister(self):
        service = DeviceService()
        service.register("alice", "tok", "ios")

        self.assertFalse(service.unregister("bob", "tok"))
        self.assertTrue(service.unregister("alice", "tok"))
        self.assertFalse(service.unregister("alice", "tok"))
