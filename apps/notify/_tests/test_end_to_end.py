"""Alarm -> incident -> change feed -> push, through the HTTP surfaces."""

import json
from datetime import timedelta
from unittest.mock import patch

from django.test import Client, TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from apps.alerts.models import Incident, IncidentState
from apps.notify._tests.fakes import RecordingPushDriver
from apps.notify.models import Device
from apps.notify.notifier import ChangeNotifier
from apps.notify.services import PushDispatcher
from apps.teams.models import ScheduleSlot, Team, TeamAccount, TeamMembership


@override_settings(ENABLE_CELERY_INGEST=False)
class EndToEndTests(TestCase):
    def setUp(self):
        self.team = Team.objects.create(name="T1")
        TeamAccount.objects.create(team=self.team, account_id="111")
        TeamMembership.objects.create(team=self.team, user_id="alice")
        TeamMembership.objects.create(team=self.team, user_id="bob")
        now = timezone.now()
        ScheduleSlot.objects.create(
            team=self.team, user_id="alice", start=now - timedelta(hours=1), end=now + timedelta(hours=1)
        )
        Device.objects.create(user_id="alice", token="alice-phone", platform="ios")
        Device.objects.create(user_id="bob", token="bob-phone", platform="ios")

        self.driver = RecordingPushDriver()
        notifier = ChangeNotifier(dispatcher=PushDispatcher(driver=self.driver, config={}))
        # Run the change-feed task inline.
        patcher = patch(
            "apps.notify.tasks.process_incident_change.delay",
            side_effect=notifier.process_change,
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def _alarm(self):
        payload = {
            "Type": "Notification",
            "TopicArn": "arn:aws:sns:us-east-1:111:alarms",
            "Message": json.dumps(
                {
                    "AlarmName": "HighCPU-critical",
                    "NewStateValue": "ALARM",
                    "NewStateReason": "CPU above 90%",
                    "AWSAccountId": "111",
                }
            ),
        }
        with self.captureOnCommitCallbacks(execute=True):
            response = Client().post(
                reverse("alerts:webhook"), data=json.dumps(payload), content_type="application/json"
            )
        self.assertEqual(response.status_code, 200)
        return Incident.objects.get(pk=response.json()["incidents_created"][0])

    def test_alarm_pages_the_on_call_responder(self):
        incident = self._alarm()

        self.assertEqual(incident.assigned_to, "alice")
        self.assertEqual(incident.state, IncidentState.TRIGGERED)
        self.assertEqual(self.driver.tokens(), ["alice-phone"])
        _, _, push = self.driver.sent[0]
        self.assertEqual(push.title, "\U0001F534 CRITICAL: HighCPU-critical")
        self.assertEqual(push.body, "CPU above 90%")
        self.assertEqual(push.badge, 1)

    def test_teammate_ack_notifies_the_assignee(self):
        incident = self._alarm()
        self.driver.sent.clear()

        with self.captureOnCommitCallbacks(execute=True):
            response = Client(headers={"X-Caller-Id": "bob"}).post(
                reverse("incidents:ack", kwargs={"incident_id": str(incident.id)}),
                data="{}",
                content_type="application/json",
            )

        self.assertEqual(response.status_code, 200)
        incident.refresh_from_db()
        self.assertEqual(incident.state, IncidentState.ACKED)
        self.assertIsNotNone(incident.acked_at)

        self.assertEqual(self.driver.tokens(), ["alice-phone"])
        _, _, push = self.driver.sent[0]
        self.assertEqual(push.data["kind"], "acknowledged")
        self.assertEqual(push.body, "Acked by bob")
        self.assertEqual(push.badge, 0)

    def test_losing_ack_sends_nothing(self):
        incident = self._alarm()
        with self.captureOnCommitCallbacks(execute=True):
            Client(headers={"X-Caller-Id": "alice"}).post(
                reverse("incidents:ack", kwargs={"incident_id": str(incident.id)}),
                data="{}",
                content_type="application/json",
            )
        self.driver.sent.clear()

        with self.captureOnCommitCallbacks(execute=True):
            response = Client(headers={"X-Caller-Id": "bob"}).post(
                reverse("incidents:ack", kwargs={"incident_id": str(incident.id)}),
                data="{}",
                content_type="application/json",
            )

        self.assertEqual(response.status_code, 409)
        self.assertEqual(self.driver.sent, [])
