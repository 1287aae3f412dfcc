from django.test import TestCase

from apps.alerts.models import IncidentChange, IncidentState
from apps.alerts.store import IncidentStore
from apps.teams.models import Team


class IncidentSerializationTests(TestCase):
    def setUp(self):
        self.store = IncidentStore()
        self.team = Team.objects.create(name="Payments")

    def test_to_dict_shape(self):
        incident = self.store.create(
            team=self.team, alarm_name="HighCPU", severity="critical", assigned_to="alice"
        )

        data = incident.to_dict()

        self.assertEqual(data["incident_id"], str(incident.id))
        self.assertEqual(data["team_id"], str(self.team.id))
        self.assertEqual(data["state"], IncidentState.TRIGGERED)
        self.assertIsNone(data["acked_by"])
        self.assertIsNone(data["acked_at"])
        self.assertFalse(data["game"])
        self.assertNotIn("point_multiplier", data)
        self.assertEqual(data["timeline"][0]["event"], "triggered")

    def test_game_incident_includes_trigger_details(self):
        incident = self.store.create(
            alarm_name="[GAME] x",
            is_game=True,
            triggered_by="bob@example.com",
            triggered_by_name="bob",
            point_multiplier=3,
        )

        data = incident.to_dict(include_timeline=False)

        self.assertTrue(data["game"])
        self.assertIsNone(data["team_id"])
        self.assertEqual(data["point_multiplier"], 3)
        self.assertNotIn("timeline", data)

    def test_change_state_helpers(self):
        incident = self.store.create(team=self.team, alarm_name="x", assigned_to="alice")
        self.store.ack(incident.id, "alice")

        change = IncidentChange.objects.get(incident_id=incident.id, sequence=2)

        self.assertEqual(change.before_state, "triggered")
        self.assertEqual(change.after_state, "acked")
