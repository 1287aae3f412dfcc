"""Custom admin site for the incident relay ops console."""

import json
from datetime import timedelta

from django.contrib.admin import AdminSite
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.html import format_html


def prettify_json(value) -> str:
    """Render a JSON value as a preformatted block for read-only admin fields."""
    if value in (None, "", {}, []):
        return "-"
    return format_html(
        '<pre style="white-space: pre-wrap; max-width: 900px;">{}</pre>',
        json.dumps(value, indent=2, sort_keys=True, default=str, ensure_ascii=False),
    )


class RelayAdminSite(AdminSite):
    site_header = "Incident Relay"
    site_title = "Incident Relay"
    index_title = "Dashboard"
    index_template = "admin/dashboard.html"

    def index(self, request, extra_context=None):
        extra_context = extra_context or {}
        extra_context.update(self._get_dashboard_context())
        return super().index(request, extra_context=extra_context)

    def _get_dashboard_context(self):
        from apps.alerts.models import (
            ACTIVE_STATES,
            ChangeStatus,
            Incident,
            IncidentChange,
            IncidentSeverity,
            IncidentState,
        )
        from apps.game.models import GameSession

        now = timezone.now()
        last_24h = now - timedelta(hours=24)

        # --- Active Incidents ---
        active_incidents = Incident.objects.filter(
            state__in=ACTIVE_STATES, is_game=False
        ).aggregate(
            total=Count("id"),
            unacked=Count("id", filter=Q(state=IncidentState.TRIGGERED)),
            critical=Count("id", filter=Q(severity=IncidentSeverity.CRITICAL)),
            warning=Count("id", filter=Q(severity=IncidentSeverity.WARNING)),
            info=Count("id", filter=Q(severity=IncidentSeverity.INFO)),
        )

        # --- Change feed backlog ---
        status_counts = dict(
            IncidentChange.objects.exclude(status=ChangeStatus.DONE)
            .values_list("status")
            .annotate(count=Count("id"))
            .values_list("status", "count")
        )
        oldest_pending = (
            IncidentChange.objects.filter(status=ChangeStatus.PENDING)
            .order_by("committed_at")
            .values_list("committed_at", flat=True)
            .first()
        )
        change_backlog = {
            "pending": status_counts.get(ChangeStatus.PENDING, 0),
            "processing": status_counts.get(ChangeStatus.PROCESSING, 0),
            "oldest_pending": oldest_pending,
            "processed_24h": IncidentChange.objects.filter(
                status=ChangeStatus.DONE, processed_at__gte=last_24h
            ).count(),
        }

        # --- Recent incidents (last 10) ---
        recent_incidents = list(
            Incident.objects.filter(is_game=False)
            .order_by("-triggered_at")
            .only("id", "alarm_name", "severity", "state", "assigned_to", "triggered_at")[:10]
        )

        # --- Busiest alarms (24h) ---
        top_alarms = list(
            Incident.objects.filter(is_game=False, triggered_at__gte=last_24h)
            .values("alarm_name")
            .annotate(count=Count("id"))
            .order_by("-count")[:5]
        )

        return {
            "active_incidents": active_incidents,
            "change_backlog": change_backlog,
            "recent_incidents": recent_incidents,
            "top_alarms": top_alarms,
            "game_session": GameSession.objects.filter(pk=GameSession.SINGLETON_KEY).first(),
        }
