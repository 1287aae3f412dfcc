"""
Team and schedule views.

All endpoints are scoped to the caller's team memberships.
"""

import logging

from apps.teams.services import ScheduleService, TeamService
from config.api import ApiView, parse_json_body

logger = logging.getLogger(__name__)


class TeamListView(ApiView):
    """
    GET  /teams/  -> caller's teams
    POST /teams/  {"name", "aws_account_ids"?, "escalation_policy"?}
    """

    def get(self, request):
        teams = TeamService().list_teams(self.caller_id)
        return self.json_response({"teams": [t.to_dict() for t in teams]})

    def post(self, request):
        result = TeamService().create_team(self.caller_id, parse_json_body(request))
        return self.outcome_response(result.outcome, result.data, result.error, ok_status=201)


class TeamDetailView(ApiView):
    """GET/PUT /teams/<team_id>/"""

    def get(self, request, team_id):
        team = TeamService().get_team(self.caller_id, team_id)
        if team is None:
            return self.error_response("Team not found", status=404)
        return self.json_response({"team": team.to_dict()})

    def put(self, request, team_id):
        result = TeamService().update_team(self.caller_id, team_id, parse_json_body(request))
        return self.outcome_response(result.outcome, result.data, result.error)


class TeamMembersView(ApiView):
    """POST /teams/<team_id>/members/  {"user_id"}"""

    def post(self, request, team_id):
        body = parse_json_body(request)
        result = TeamService().add_member(self.caller_id, team_id, body.get("user_id"))
        return self.outcome_response(result.outcome, result.data, result.error)


class TeamMemberDetailView(ApiView):
    """DELETE /teams/<team_id>/members/<user_id>/"""

    def delete(self, request, team_id, user_id):
        result = TeamService().remove_member(self.caller_id, team_id, user_id)
        return self.outcome_response(result.outcome, result.data, result.error)


class CurrentOnCallView(ApiView):
    """GET /schedules/current/ -> {team_id: {user_id, slot} | null}"""

    def get(self, request):
        return self.json_response({"on_call": ScheduleService().current_on_call(self.caller_id)})


class TeamScheduleView(ApiView):
    """
    GET  /schedules/<team_id>/  -> slots ordered by start
    POST /schedules/<team_id>/  {"user_id", "start", "end"}
    """

    def get(self, request, team_id):
        result = ScheduleService().list_slots(self.caller_id, team_id)
        return self.outcome_response(result.outcome, result.data, result.error)

    def post(self, request, team_id):
        result = ScheduleService().create_slot(self.caller_id, team_id, parse_json_body(request))
        return self.outcome_response(result.outcome, result.data, result.error, ok_status=201)


class ScheduleSlotView(ApiView):
    """DELETE /schedules/<team_id>/<slot_id>/"""

    def delete(self, request, team_id, slot_id):
        result = ScheduleService().delete_slot(self.caller_id, team_id, slot_id)
        return self.outcome_response(result.outcome, result.data, result.error)
