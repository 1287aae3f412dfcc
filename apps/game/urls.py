"""
URL configuration for game mode.
"""

from django.urls import path

from apps.game import views

app_name = "game"

urlpatterns = [
    path("config/", views.GameConfigView.as_view(), name="config"),
    path("start/", views.GameStartView.as_view(), name="start"),
    path("end/", views.GameEndView.as_view(), name="end"),
    path("session/", views.GameSessionView.as_view(), name="session"),
    path("trigger/", views.GameTriggerView.as_view(), name="trigger"),
    path("ack/<str:incident_id>/", views.GameAckView.as_view(), name="ack"),
    path("incidents/", views.GameIncidentsView.as_view(), name="incidents"),
    path("leaderboard/", views.LeaderboardView.as_view(), name="leaderboard"),
]
