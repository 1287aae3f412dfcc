import json
from datetime import timedelta
from unittest.mock import patch

from django.db import OperationalError
from django.test import Client, TestCase
from django.urls import reverse
from django.utils import timezone

from apps.alerts.models import Incident
from apps.alerts.store import IncidentStore
from apps.teams.models import Team, TeamMembership


class IncidentViewTestCase(TestCase):
    def setUp(self):
        self.store = IncidentStore()
        self.team = Team.objects.create(name="Payments")
        TeamMembership.objects.create(team=self.team, user_id="alice@example.com")
        self.client = Client(headers={"X-Caller-Id": "alice@example.com"})
        self.incident = self.store.create(
            team=self.team,
            alarm_name="HighCPU-critical",
            severity="critical",
            assigned_to="alice@example.com",
        )

    def _action(self, action, body=None, caller="alice@example.com"):
        return self.client.post(
            reverse(f"incidents:{action}", kwargs={"incident_id": str(self.incident.id)}),
            data=json.dumps(body or {}),
            content_type="application/json",
            headers={"X-Caller-Id": caller},
        )


class IncidentListViewTests(IncidentViewTestCase):
    def test_requires_caller(self):
        self.assertEqual(Client().get(reverse("incidents:list")).status_code, 401)

    def test_lists_callers_team_incidents(self):
        other = Team.objects.create(name="Other")
        self.store.create(team=other, alarm_name="not mine", assigned_to="zed")

        response = self.client.get(reverse("incidents:list"))

        self.assertEqual(response.status_code, 200)
        ids = [i["incident_id"] for i in response.json()["incidents"]]
        self.assertEqual(ids, [str(self.incident.id)])

    def test_active_and_history_views(self):
        resolved = self.store.create(team=self.team, alarm_name="old", assigned_to="bob")
        self.store.resolve(resolved.id, "bob")

        active = self.client.get(reverse("incidents:list"), {"view": "active"}).json()
        history = self.client.get(reverse("incidents:list"), {"view": "history"}).json()

        self.assertEqual([i["incident_id"] for i in active["incidents"]], [str(self.incident.id)])
        self.assertEqual([i["incident_id"] for i in history["incidents"]], [str(resolved.id)])

    def test_newest_first_with_limit(self):
        newer = self.store.create(team=self.team, alarm_name="newer", assigned_to="bob")
        Incident.objects.filter(pk=self.incident.pk).update(
            triggered_at=timezone.now() - timedelta(minutes=5)
        )

        response = self.client.get(reverse("incidents:list"), {"limit": "1"})

        self.assertEqual(
            [i["incident_id"] for i in response.json()["incidents"]], [str(newer.id)]
        )

    def test_rejects_bad_parameters(self):
        bad = (
            {"state": "sleeping"},
            {"view": "all"},
            {"limit": "x"},
            {"limit": "0"},
            {"team_id": "not-a-uuid"},
        )
        for params in bad:
            with self.subTest(params=params):
                response = self.client.get(reverse("incidents:list"), params)
                self.assertEqual(response.status_code, 400)

    def test_storage_failure_is_retryable_503(self):
        with patch("apps.alerts.views.IncidentStore.list", side_effect=OperationalError("down")):
            response = self.client.get(reverse("incidents:list"))

        self.assertEqual(response.status_code, 503)
        self.assertTrue(response.json()["retryable"])


class IncidentDetailViewTests(IncidentViewTestCase):
    def test_get(self):
        response = self.client.get(
            reverse("incidents:detail", kwargs={"incident_id": str(self.incident.id)})
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["incident"]["alarm_name"], "HighCPU-critical")

    def test_not_found(self):
        response = self.client.get(reverse("incidents:detail", kwargs={"incident_id": "nope"}))
        self.assertEqual(response.status_code, 404)


class IncidentActionViewTests(IncidentViewTestCase):
    def test_ack(self):
        response = self._action("ack", {"display_name": "Alice"})

        self.assertEqual(response.status_code, 200)
        incident = response.json()["incident"]
        self.assertEqual(incident["state"], "acked")
        self.assertEqual(incident["acked_by"], "alice@example.com")
        self.assertEqual(incident["acked_by_name"], "Alice")

    def test_second_ack_is_409_with_current_incident(self):
        self._action("ack")

        response = self._action("ack", caller="bob@example.com")

        self.assertEqual(response.status_code, 409)
        data = response.json()
        self.assertEqual(data["error"], "Incident already acknowledged by alice")
        self.assertEqual(data["incident"]["acked_by"], "alice@example.com")

    def test_unack_resolve(self):
        self._action("ack")
        self.assertEqual(self._action("unack").status_code, 200)
        response = self._action("resolve", {"note": "rebooted"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["incident"]["timeline"][-1]["note"], "rebooted")
        self.assertEqual(self._action("resolve").status_code, 409)

    def test_reassign(self):
        response = self._action("reassign", {"user_id": "bob@example.com"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["incident"]["assigned_to"], "bob@example.com")

    def test_reassign_without_user_is_400(self):
        self.assertEqual(self._action("reassign", {}).status_code, 400)

    def test_unknown_incident_is_404(self):
        response = self.client.post(
            reverse("incidents:ack", kwargs={"incident_id": "00000000-0000-0000-0000-000000000000"}),
            data="{}",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 404)

    def test_invalid_body_is_400(self):
        response = self.client.post(
            reverse("incidents:resolve", kwargs={"incident_id": str(self.incident.id)}),
            data="[1, 2]",
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

    def test_non_string_display_name_is_400(self):
        response = self._action("ack", {"display_name": 5})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(Incident.objects.get(pk=self.incident.pk).state, "triggered")
