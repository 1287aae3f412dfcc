"""Shared plumbing for the JSON HTTP surfaces.

Every API view receives the caller identity from an upstream authentication
boundary (see settings.CALLER_IDENTITY_HEADER) and answers in JSON. Business
outcomes map onto status codes here so all apps render conflicts, validation
failures and missing records the same way.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError
from django.http import HttpRequest, JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.alerts.store import Outcome

logger = logging.getLogger(__name__)

OUTCOME_STATUS = {
    Outcome.OK: 200,
    Outcome.NOT_FOUND: 404,
    Outcome.CONFLICT: 409,
    Outcome.VALIDATION: 400,
}


class InvalidBody(ValueError):
    """Raised when a request body is not a JSON object."""


def get_caller_id(request: HttpRequest) -> str | None:
    header = settings.CALLER_IDENTITY_HEADER
    value = request.headers.get(header, "")
    return value.strip() or None


def parse_json_body(request: HttpRequest) -> dict[str, Any]:
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidBody(f"Invalid JSON body: {e}") from e
    if not isinstance(body, dict):
        raise InvalidBody("JSON body must be an object")
    return body


def display_name_for(caller_id: str, body: dict[str, Any] | None = None) -> str:
    """Display name from the body, falling back to the caller id's local part.

    Raises:
        InvalidBody: if display_name is present but not a string.
    """
    name = (body or {}).get("display_name") or ""
    if not isinstance(name, str):
        raise InvalidBody("display_name must be a string")
    name = name.strip()
    return name or caller_id.split("@")[0]


class JSONResponseMixin:
    """Mixin for JSON responses."""

    def json_response(self, data: Any, status: int = 200, safe: bool = True) -> JsonResponse:
        return JsonResponse(data, status=status, safe=safe)

    def error_response(self, message: str, status: int = 400, **extra: Any) -> JsonResponse:
        return JsonResponse({"error": message, **extra}, status=status)

    def outcome_response(
        self,
        outcome: Outcome,
        data: dict[str, Any],
        error: str = "",
        ok_status: int = 200,
    ) -> JsonResponse:
        if outcome is Outcome.OK:
            return JsonResponse(data, status=ok_status)
        return JsonResponse({"error": error, "outcome": outcome.value, **data}, status=OUTCOME_STATUS[outcome])


@method_decorator(csrf_exempt, name="dispatch")
class ApiView(JSONResponseMixin, View):
    """Base view for caller-scoped endpoints.

    Rejects requests without a caller identity, turns malformed bodies into 400
    and storage failures into a retryable 503.
    """

    caller_id: str = ""

    def dispatch(self, request, *args, **kwargs):
        caller_id = get_caller_id(request)
        if not caller_id:
            return self.error_response("Unauthorized", status=401)
        self.caller_id = caller_id

        try:
            return super().dispatch(request, *args, **kwargs)
        except InvalidBody as e:
            return self.error_response(str(e), status=400)
        except DatabaseError as e:
            logger.exception("Storage failure handling %s %s", request.method, request.path)
            return self.error_response(
                f"Storage unavailable: {type(e).__name__}", status=503, retryable=True
            )
