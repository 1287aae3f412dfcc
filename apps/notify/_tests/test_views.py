import json

from django.test import Client, TestCase
from django.urls import reverse

from apps.notify.models import Device


class DeviceViewTests(TestCase):
    def setUp(self):
        self.client = Client(headers={"X-Caller-Id": "alice@example.com"})
        self.url = reverse("notify:devices")

    def _register(self, body):
        return self.client.post(self.url, data=json.dumps(body), content_type="application/json")

    def test_requires_caller(self):
        self.assertEqual(Client().get(self.url).status_code, 401)

    def test_register_then_refresh(self):
        created = self._register({"token": "apns-token", "platform": "ios"})
        refreshed = self._register({"device_token": "apns-token", "platform": "ios"})

        self.assertEqual(created.status_code, 201)
        self.assertEqual(refreshed.status_code, 200)
        self.assertEqual(created.json()["device"]["device_token"], "apns-token")
        self.assertEqual(Device.objects.count(), 1)

    def test_register_validation(self):
        cases = [
            {"platform": "ios"},
            {"token": "t"},
            {"token": "t", "platform": "blackberry"},
            {"token": 123, "platform": "ios"},
            {"token": "x" * 600, "platform": "ios"},
        ]
        for body in cases:
            with self.subTest(body=body):
                self.assertEqual(self._register(body).status_code, 400)
        self.assertFalse(Device.objects.exists())

    def test_list_only_returns_callers_devices(self):
        Device.objects.create(user_id="alice@example.com", token="a", platform="ios")
        Device.objects.create(user_id="bob@example.com", token="b", platform="ios")

        devices = self.client.get(self.url).json()["devices"]

        self.assertEqual([d["device_token"] for d in devices], ["a"])

    def test_unregister(self):
        Device.objects.create(user_id="alice@example.com", token="fcm:abc/def", platform="android")

        response = self.client.delete(
            reverse("notify:device_detail", kwargs={"token": "fcm:abc/def"})
        )
        missing = self.client.delete(reverse("notify:device_detail", kwargs={"token": "other"}))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(missing.status_code, 404)
        self.assertFalse(Device.objects.exists())

    def test_cannot_unregister_someone_elses_device(self):
        Device.objects.create(user_id="bob@example.com", token="b", platform="ios")

        response = self.client.delete(reverse("notify:device_detail", kwargs={"token": "b"}))

        self.assertEqual(response.status_code, 404)
        self.assertTrue(Device.objects.exists())
