"""
URL configuration for the schedule surface.
"""

from django.urls import path

from apps.teams.views import CurrentOnCallView, ScheduleSlotView, TeamScheduleView

app_name = "schedules"

urlpatterns = [
    path("current/", CurrentOnCallView.as_view(), name="current"),
    path("<str:team_id>/", TeamScheduleView.as_view(), name="team"),
    path("<str:team_id>/<str:slot_id>/", ScheduleSlotView.as_view(), name="slot"),
]
