"""Jinja2 templating for push notification content.

Template source accepted by render_template:
- None or empty -> returns None
- string starting with "file:<name>" -> loads file from apps/notify/templates/<name>
- dict: {"type": "inline"|"file", "template": "..."}
- string (default) -> treated as inline template

Each notification kind has a default title/body; settings.PUSH_TEMPLATES can
override either per kind, e.g.

    PUSH_TEMPLATES = {"resolved": {"body": "Closed by {{ incident.acked_by or 'someone' }}"}}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import jinja2
from django.conf import settings

TEMPLATES_DIR = Path(__file__).parent / "templates"

logger = logging.getLogger(__name__)

_JINJA_ENV = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=False,
    keep_trailing_newline=False,
)

SEVERITY_EMOJIS = {
    "critical": "\U0001F534",
    "warning": "\U0001F7E1",
    "info": "\U0001F7E2",
}

DEFAULT_TEMPLATES: dict[str, dict[str, str]] = {
    "new_incident": {
        "title": "{{ emoji }} {{ incident.severity | upper }}: {{ incident.alarm_name }}",
        "body": "file:new_incident_body.j2",
    },
    "acknowledged": {
        "title": "✓ Acknowledged: {{ incident.alarm_name }}",
        "body": "Acked by {{ acker or 'teammate' }}",
    },
    "resolved": {
        "title": "✓ Resolved: {{ incident.alarm_name }}",
        "body": "Incident has been resolved",
    },
    "unacknowledged": {
        "title": "⚠ Unacked: {{ incident.alarm_name }}",
        "body": "Incident requires attention again",
    },
}


def _load_template_from_file(name: str) -> jinja2.Template:
    try:
        return _JINJA_ENV.get_template(name)
    except jinja2.TemplateNotFound:
        try:
            return _JINJA_ENV.get_template(name + ".j2")
        except jinja2.TemplateNotFound as e:
            raise ValueError(f"Template file not found: {name}") from e


def render_template(source: Any, context: dict[str, Any]) -> str | None:
    """Render a template source with the provided context.

    Raises:
        ValueError: for unsupported sources, missing files or render errors.
    """
    if not source:
        return None

    if isinstance(source, dict):
        if source.get("type", "inline") == "file":
            source = f"file:{source.get('template', '')}"
        else:
            source = source.get("template")
            if not source:
                return None
    elif not isinstance(source, str):
        raise ValueError("Unsupported template source")

    try:
        if source.startswith("file:"):
            template = _load_template_from_file(source.split(":", 1)[1])
        else:
            template = _JINJA_ENV.from_string(source)
        return template.render(**(context or {})).strip()
    except jinja2.TemplateError as e:
        raise ValueError(f"Jinja2 render error: {e}") from e


def render_push_content(kind: str, context: dict[str, Any]) -> tuple[str, str]:
    """Render (title, body) for a notification kind, honoring PUSH_TEMPLATES overrides."""
    defaults = DEFAULT_TEMPLATES[kind]
    overrides = (settings.PUSH_TEMPLATES or {}).get(kind) or {}

    rendered = {}
    for part in ("title", "body"):
        source = overrides.get(part) or defaults[part]
        try:
            rendered[part] = render_template(source, context) or ""
        except ValueError as e:
            if source is defaults[part]:
                raise
            # A broken override must not stop the push; use the default.
            logger.error("PUSH_TEMPLATES[%s][%s] failed to render: %s", kind, part, e)
            rendered[part] = render_template(defaults[part], context) or ""
    return rendered["title"], rendered["body"]
