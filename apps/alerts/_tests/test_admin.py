import pytest

from apps.alerts.models import IncidentChange, IncidentState
from apps.alerts.store import IncidentStore
from apps.game.models import Score
from apps.notify.models import Device
from apps.teams.models import Team


@pytest.fixture
def incident(db):
    team = Team.objects.create(name="Payments")
    return IncidentStore().create(
        team=team, alarm_name="HighCPU-critical", severity="critical", assigned_to="alice"
    )


@pytest.mark.django_db
class TestAdminPagesLoad:
    def test_dashboard(self, admin_client, incident):
        response = admin_client.get("/admin/")
        assert response.status_code == 200
        assert b"Game session" in response.content

    @pytest.mark.parametrize(
        "url",
        [
            "/admin/alerts/incident/",
            "/admin/alerts/incidentchange/",
            "/admin/teams/team/",
            "/admin/teams/scheduleslot/",
            "/admin/notify/device/",
            "/admin/notify/notificationrecord/",
            "/admin/game/score/",
            "/admin/game/gamesession/",
        ],
    )
    def test_changelists(self, admin_client, incident, url):
        Device.objects.create(user_id="alice", token="tok-1", platform="ios")
        Score.objects.create(user_id="bob", total_points=20, total_acks=1)
        response = admin_client.get(url)
        assert response.status_code == 200

    def test_incident_change_page(self, admin_client, incident):
        response = admin_client.get(f"/admin/alerts/incident/{incident.pk}/change/")
        assert response.status_code == 200


@pytest.mark.django_db
class TestIncidentActionsGoThroughStore:
    def test_acknowledge_selected(self, admin_client, incident):
        response = admin_client.post(
            "/admin/alerts/incident/",
            {"action": "acknowledge_selected", "_selected_action": [incident.pk]},
        )
        assert response.status_code == 302
        incident.refresh_from_db()
        assert incident.state == IncidentState.ACKED
        assert incident.acked_by == "admin:admin"
        assert incident.version == 2

    def test_resolve_object_action(self, admin_client, incident):
        response = admin_client.get(
            f"/admin/alerts/incident/{incident.pk}/actions/resolve_incident/"
        )
        assert response.status_code == 302
        incident.refresh_from_db()
        assert incident.state == IncidentState.RESOLVED
        assert IncidentChange.objects.filter(incident_id=incident.pk).count() == 2

    def test_delete_records_remove_change(self, admin_client, incident):
        response = admin_client.post(
            f"/admin/alerts/incident/{incident.pk}/delete/", {"post": "yes"}
        )
        assert response.status_code == 302
        assert IncidentChange.objects.filter(
            incident_id=incident.pk, change_type="remove"
        ).exists()
