"""
Game-mode views.

Everything except /game/config/ answers 403 while GAME_MODE_ENABLED is off.
"""

from django.conf import settings

from apps.game.services import GameService
from config.api import ApiView, display_name_for, parse_json_body


class GameConfigView(ApiView):
    """GET /game/config/"""

    def get(self, request):
        return self.json_response(GameService().config())


class GameView(ApiView):
    """Base view for game endpoints gated on GAME_MODE_ENABLED."""

    def dispatch(self, request, *args, **kwargs):
        if not settings.GAME_MODE_ENABLED:
            return self.error_response("Game mode is disabled", status=403)
        return super().dispatch(request, *args, **kwargs)

    def render(self, result):
        return self.outcome_response(result.outcome, result.data, result.error)


class GameStartView(GameView):
    """POST /game/start/  {"display_name"?}"""

    def post(self, request):
        body = parse_json_body(request)
        return self.render(GameService().start(self.caller_id, display_name_for(self.caller_id, body)))


class GameEndView(GameView):
    """POST /game/end/"""

    def post(self, request):
        return self.render(GameService().end(self.caller_id))


class GameSessionView(GameView):
    """GET /game/session/"""

    def get(self, request):
        return self.json_response(GameService().session_status())


class GameTriggerView(GameView):
    """POST /game/trigger/  {"title", "severity"?, "display_name"?}"""

    def post(self, request):
        return self.render(GameService().trigger(self.caller_id, parse_json_body(request)))


class GameAckView(GameView):
    """POST /game/ack/<incident_id>/"""

    def post(self, request, incident_id):
        body = parse_json_body(request)
        result = GameService().ack(
            self.caller_id, incident_id, display_name_for(self.caller_id, body)
        )
        return self.render(result)


class GameIncidentsView(GameView):
    """GET /game/incidents/ -> triggered game incidents"""

    def get(self, request):
        return self.json_response({"incidents": GameService().active_incidents()})


class LeaderboardView(GameView):
    """GET /game/leaderboard/"""

    def get(self, request):
        return self.json_response(GameService().leaderboard(self.caller_id))
