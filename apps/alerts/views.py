"""
Webhook and incident views.

The webhook receives alarm payloads from monitoring sources. The incident
views expose the store's list/get/transition operations to responders.
"""

import json
import logging

from django.conf import settings
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.alerts.models import IncidentState
from apps.alerts.services import AlarmIngestor
from apps.alerts.store import IncidentStore, Outcome, parse_uuid
from apps.teams.models import TeamMembership
from config.api import ApiView, display_name_for, parse_json_body

logger = logging.getLogger(__name__)

LIST_VIEWS = ("active", "history")


@method_decorator(csrf_exempt, name="dispatch")
class AlarmWebhookView(View):
    """
    Webhook endpoint for receiving alarm state changes.

    POST /alerts/webhook/
    POST /alerts/webhook/<driver>/

    The driver can be auto-detected or specified in the URL. Resolution
    failures (no team, nobody on call) still answer 200 so the source does not
    redeliver an alarm that can never be routed.
    """

    def post(self, request, driver=None):
        try:
            payload = json.loads(request.body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid JSON payload: {e}")
            return JsonResponse({"status": "error", "message": "Invalid JSON payload"}, status=400)
        if not isinstance(payload, dict):
            return JsonResponse(
                {"status": "error", "message": "Payload must be a JSON object"}, status=400
            )

        # With Celery enabled, enqueue and return quickly.
        if settings.ENABLE_CELERY_INGEST and not settings.CELERY_TASK_ALWAYS_EAGER:
            from apps.alerts.tasks import ingest_alarm_payload

            try:
                async_res = ingest_alarm_payload.delay(payload, driver)
                return JsonResponse({"status": "queued", "task_id": async_res.id}, status=202)
            except Exception as enqueue_err:
                # Broker or result backend unreachable: process synchronously instead of failing the webhook.
                logger.warning(
                    "Celery ingest enqueue failed; falling back to sync processing: %s",
                    enqueue_err,
                )

        result = AlarmIngestor().process_webhook(payload, driver=driver)
        if result.outcome is Outcome.VALIDATION:
            return JsonResponse(
                {"status": "error", "message": "; ".join(result.errors)}, status=400
            )
        if result.has_errors:
            logger.warning(f"Webhook processing problems: {result.errors + result.unrouted}")
        return JsonResponse(result.to_dict())

    def get(self, request, driver=None):
        """Health check endpoint."""
        return JsonResponse(
            {
                "status": "ok",
                "message": "Alarm webhook endpoint is ready",
                "driver": driver or "auto-detect",
            }
        )


class IncidentListView(ApiView):
    """
    GET /incidents/?view=active|history&state=&team_id=&assigned_to=&limit=

    Without team_id, lists incidents of every team the caller belongs to.
    """

    def get(self, request):
        params = request.GET
        state = params.get("state") or None
        view = params.get("view") or None
        if state and state not in IncidentState.values:
            return self.error_response(f"Unknown state: {state}")
        if view and view not in LIST_VIEWS:
            return self.error_response(f"Unknown view: {view}")

        try:
            limit = int(params.get("limit") or settings.INCIDENT_LIST_DEFAULT_LIMIT)
        except ValueError:
            return self.error_response("limit must be an integer")
        if limit < 1:
            return self.error_response("limit must be positive")
        limit = min(limit, settings.INCIDENT_LIST_MAX_LIMIT)

        store = IncidentStore()
        team_id = params.get("team_id") or None
        if team_id:
            team_pk = parse_uuid(team_id)
            if team_pk is None:
                return self.error_response("team_id must be a UUID")
            team_ids = [team_pk]
        else:
            team_ids = list(
                TeamMembership.objects.filter(user_id=self.caller_id).values_list("team_id", flat=True)
            )

        incidents = []
        for tid in team_ids:
            incidents.extend(
                store.list(
                    team_id=tid,
                    state=state,
                    view=view,
                    assigned_to=params.get("assigned_to") or None,
                    limit=limit,
                )
            )
        incidents.sort(key=lambda i: i.triggered_at, reverse=True)
        return self.json_response({"incidents": [i.to_dict() for i in incidents[:limit]]})


class IncidentDetailView(ApiView):
    """GET /incidents/<id>/"""

    def get(self, request, incident_id):
        incident = IncidentStore().get(incident_id)
        if incident is None:
            return self.error_response("Incident not found", status=404)
        return self.json_response({"incident": incident.to_dict()})


class IncidentActionView(ApiView):
    """
    POST /incidents/<id>/<action>/

    Conflicts answer 409 with the current incident so the client can show
    that someone else already acted.
    """

    action = ""

    def post(self, request, incident_id):
        body = parse_json_body(request)
        store = IncidentStore()

        if self.action == "ack":
            result = store.ack(incident_id, self.caller_id, display_name_for(self.caller_id, body))
        elif self.action == "unack":
            result = store.unack(incident_id, self.caller_id)
        elif self.action == "resolve":
            note = body.get("note") or ""
            if not isinstance(note, str):
                return self.error_response("note must be a string")
            result = store.resolve(incident_id, self.caller_id, note=note)
        elif self.action == "reassign":
            new_responder = body.get("user_id") or ""
            if not isinstance(new_responder, str):
                return self.error_response("user_id must be a string")
            result = store.reassign(incident_id, self.caller_id, new_responder)
        else:
            return self.error_response(f"Unknown action: {self.action}", status=404)

        return self.outcome_response(result.outcome, result.to_dict(), result.error)
