from django.test import SimpleTestCase

from apps.alerts.drivers.generic import GenericWebhookDriver


class GenericWebhookDriverTests(SimpleTestCase):
    def setUp(self):
        self.driver = GenericWebhookDriver()

    def test_single_alarm(self):
        parsed = self.driver.parse(
            {"alarm_name": "DiskFull-warning", "state": "firing", "account_id": "111"}
        )

        alarm = parsed.alarms[0]
        self.assertEqual(alarm.new_state, "ALARM")
        self.assertEqual(alarm.severity, "warning")
        self.assertEqual(alarm.account_id, "111")

    def test_alarm_list_inherits_envelope_account(self):
        parsed = self.driver.parse(
            {
                "source": "my-monitor",
                "account_id": "222",
                "alarms": [
                    {"alarm_name": "a", "state": "resolved"},
                    {"alarm_name": "b", "severity": "critical", "account_id": "333"},
                ],
            }
        )

        self.assertEqual(parsed.source, "my-monitor")
        self.assertEqual([a.new_state for a in parsed.alarms], ["OK", "ALARM"])
        self.assertEqual([a.account_id for a in parsed.alarms], ["222", "333"])
        self.assertEqual(parsed.alarms[1].severity, "critical")

    def test_explicit_severity_wins_over_name(self):
        alarm = self.driver.parse({"alarm_name": "error-rate", "severity": "info"}).alarms[0]
        self.assertEqual(alarm.severity, "info")

    def test_missing_name_raises(self):
        with self.assertRaises(ValueError):
            self.driver.parse({"alarms": [{"state": "ALARM"}]})

    def test_non_string_fields_raise(self):
        for alarm in (
            {"alarm_name": 123},
            {"alarm_name": "disk", "severity": ["critical"]},
            {"alarm_name": "disk", "state": 1},
            {"alarm_name": "disk", "reason": {"text": "full"}},
        ):
            with self.subTest(alarm=alarm), self.assertRaises(ValueError):
                self.driver.parse(alarm)

    def test_validate(self):
        self.assertTrue(self.driver.validate({"name": "x"}))
        self.assertTrue(self.driver.validate({"alarms": []}))
        self.assertFalse(self.driver.validate({"foo": "bar"}))
