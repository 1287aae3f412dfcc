"""
URL configuration for the teams surface.
"""

from django.urls import path

from apps.teams.views import TeamDetailView, TeamListView, TeamMemberDetailView, TeamMembersView

app_name = "teams"

urlpatterns = [
    path("", TeamListView.as_view(), name="list"),
    path("<str:team_id>/", TeamDetailView.as_view(), name="detail"),
    path("<str:team_id>/members/", TeamMembersView.as_view(), name="members"),
    path(
        "<str:team_id>/members/<str:user_id>/",
        TeamMemberDetailView.as_view(),
        name="member_detail",
    ),
]
