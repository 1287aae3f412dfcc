"""Root URL configuration."""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("alerts/", include("apps.alerts.urls")),
    path("incidents/", include("apps.alerts.incident_urls")),
    path("teams/", include("apps.teams.urls")),
    path("schedules/", include("apps.teams.schedule_urls")),
    path("devices/", include("apps.notify.urls")),
    path("game/", include("apps.game.urls")),
]
