from datetime import datetime, timedelta
from datetime import timezone as dt_tz

from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from apps.alerts.store import Outcome
from apps.teams.models import ScheduleSlot, Team, TeamAccount, TeamMembership
from apps.teams.services import (
    ScheduleService,
    TeamService,
    parse_instant,
    validate_escalation_policy,
)


class ParseInstantTests(SimpleTestCase):
    def test_iso_with_z_suffix(self):
        self.assertEqual(
            parse_instant("2024-05-01T10:00:00Z"),
            datetime(2024, 5, 1, 10, 0, tzinfo=dt_tz.utc),
        )

    def test_epoch_milliseconds(self):
        self.assertEqual(
            parse_instant(1714557600000),
            datetime(2024, 5, 1, 10, 0, tzinfo=dt_tz.utc),
        )

    def test_epoch_milliseconds_as_string(self):
        self.assertEqual(parse_instant("1714557600000").year, 2024)

    def test_naive_iso_is_utc(self):
        self.assertEqual(parse_instant("2024-05-01T10:00:00").tzinfo, dt_tz.utc)

    def test_garbage_raises(self):
        for value in ("tomorrow", "", None, True, {}):
            with self.subTest(value=value):
                with self.assertRaises(ValueError):
                    parse_instant(value)


class EscalationPolicyTests(SimpleTestCase):
    def test_valid_policy(self):
        policy = {"levels": [{"delay_minutes": 5, "target": "on_call"}]}
        self.assertEqual(validate_escalation_policy(policy), "")

    def test_rejects_unknown_target(self):
        policy = {"levels": [{"delay_minutes": 5, "target": "everyone"}]}
        self.assertIn("target", validate_escalation_policy(policy))

    def test_rejects_negative_delay(self):
        policy = {"levels": [{"delay_minutes": -1, "target": "on_call"}]}
        self.assertIn("delay_minutes", validate_escalation_policy(policy))

    def test_rejects_missing_levels(self):
        self.assertTrue(validate_escalation_policy({}))


class TeamServiceTests(TestCase):
    def setUp(self):
        self.service = TeamService()

    def test_create_team_makes_caller_a_member(self):
        result = self.service.create_team(
            "alice", {"name": " Payments ", "aws_account_ids": ["111", "222"]}
        )

        self.assertEqual(result.outcome, Outcome.OK)
        team = Team.objects.get()
        self.assertEqual(team.name, "Payments")
        self.assertTrue(team.has_member("alice"))
        self.assertEqual(team.account_ids, ["111", "222"])
        self.assertEqual(result.data["team"]["aws_account_ids"], ["111", "222"])

    def test_create_team_requires_name(self):
        result = self.service.create_team("alice", {"name": "  "})
        self.assertEqual(result.outcome, Outcome.VALIDATION)
        self.assertFalse(Team.objects.exists())

    def test_create_team_rejects_account_owned_by_another_team(self):
        self.service.create_team("alice", {"name": "A", "aws_account_ids": ["111"]})

        result = self.service.create_team("bob", {"name": "B", "aws_account_ids": ["111"]})

        self.assertEqual(result.outcome, Outcome.VALIDATION)
        self.assertEqual(Team.objects.count(), 1)

    def test_non_member_cannot_see_team(self):
        team = Team.objects.create(name="Private")
        TeamMembership.objects.create(team=team, user_id="alice")

        self.assertIsNone(self.service.get_team("mallory", team.id))
        self.assertEqual(
            self.service.update_team("mallory", team.id, {"name": "Mine"}).outcome,
            Outcome.NOT_FOUND,
        )

    def test_get_team_with_malformed_id(self):
        self.assertIsNone(self.service.get_team("alice", "not-a-uuid"))

    def test_list_teams_only_returns_memberships(self):
        mine = Team.objects.create(name="Mine")
        TeamMembership.objects.create(team=mine, user_id="alice")
        Team.objects.create(name="Theirs")

        self.assertEqual(self.service.list_teams("alice"), [mine])

    def test_update_team_replaces_accounts(self):
        team = Team.objects.create(name="A")
        TeamMembership.objects.create(team=team, user_id="alice")
        TeamAccount.objects.create(team=team, account_id="111")

        result = self.service.update_team(
            "alice", team.id, {"name": "Renamed", "aws_account_ids": ["222"]}
        )

        self.assertEqual(result.outcome, Outcome.OK)
        team.refresh_from_db()
        self.assertEqual(team.name, "Renamed")
        self.assertEqual(team.account_ids, ["222"])

    def test_update_team_without_changes_is_validation(self):
        team = Team.objects.create(name="A")
        TeamMembership.objects.create(team=team, user_id="alice")

        self.assertEqual(
            self.service.update_team("alice", team.id, {}).outcome, Outcome.VALIDATION
        )

    def test_add_and_remove_member(self):
        team = Team.objects.create(name="A")
        TeamMembership.objects.create(team=team, user_id="alice")

        self.assertTrue(self.service.add_member("alice", team.id, "bob").ok)
        self.assertTrue(team.has_member("bob"))
        # adding twice is harmless
        self.assertTrue(self.service.add_member("alice", team.id, "bob").ok)
        self.assertEqual(team.memberships.filter(user_id="bob").count(), 1)

        self.assertTrue(self.service.remove_member("alice", team.id, "bob").ok)
        self.assertFalse(team.has_member("bob"))
        self.assertEqual(
            self.service.remove_member("alice", team.id, "bob").outcome, Outcome.NOT_FOUND
        )


class ScheduleServiceTests(TestCase):
    def setUp(self):
        self.service = ScheduleService()
        self.team = Team.objects.create(name="Payments")
        TeamMembership.objects.create(team=self.team, user_id="alice")
        self.now = timezone.now()

    def test_create_slot(self):
        result = self.service.create_slot(
            "alice",
            self.team.id,
            {
                "user_id": "bob",
                "start": (self.now - timedelta(hours=1)).isoformat(),
                "end": (self.now + timedelta(hours=1)).isoformat(),
            },
        )

        self.assertEqual(result.outcome, Outcome.OK)
        self.assertEqual(result.data["schedule"]["user_id"], "bob")
        self.assertEqual(ScheduleSlot.objects.count(), 1)

    def test_create_slot_rejects_inverted_window(self):
        result = self.service.create_slot(
            "alice",
            self.team.id,
            {"user_id": "bob", "start": self.now.isoformat(), "end": self.now.isoformat()},
        )
        self.assertEqual(result.outcome, Outcome.VALIDATION)

    def test_create_slot_requires_fields(self):
        result = self.service.create_slot("alice", self.team.id, {"user_id": "bob"})
        self.assertEqual(result.outcome, Outcome.VALIDATION)
        self.assertEqual(result.error, "Missing user_id, start, or end")

    def test_current_on_call_per_team(self):
        ScheduleSlot.objects.create(
            team=self.team,
            user_id="bob",
            start=self.now - timedelta(hours=1),
            end=self.now + timedelta(hours=1),
        )
        idle = Team.objects.create(name="Idle")
        TeamMembership.objects.create(team=idle, user_id="alice")

        on_call = self.service.current_on_call("alice", self.now)

        self.assertEqual(on_call[str(self.team.id)]["user_id"], "bob")
        self.assertIsNone(on_call[str(idle.id)])

    def test_list_and_delete_slot(self):
        slot = ScheduleSlot.objects.create(
            team=self.team,
            user_id="bob",
            start=self.now,
            end=self.now + timedelta(hours=8),
        )

        listed = self.service.list_slots("alice", self.team.id)
        self.assertEqual([s["slot_id"] for s in listed.data["schedules"]], [str(slot.id)])

        self.assertTrue(self.service.delete_slot("alice", self.team.id, slot.id).ok)
        self.assertEqual(
            self.service.delete_slot("alice", self.team.id, slot.id).outcome, Outcome.NOT_FOUND
        )

    def test_non_member_schedule_access_is_not_found(self):
        self.assertEqual(
            self.service.list_slots("mallory", self.team.id).outcome, Outcome.NOT_FOUND
        )
