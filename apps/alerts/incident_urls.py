"""
URL configuration for the incident surface.
"""

from django.urls import path

from apps.alerts.views import IncidentActionView, IncidentDetailView, IncidentListView


app_name = "incidents"

urlpatterns = [
    path("", IncidentListView.as_view(), name="list"),
    path("<str:incident_id>/", IncidentDetailView.as_view(), name="detail"),
    path("<str:incident_id>/ack/", IncidentActionView.as_view(action="ack"), name="ack"),
    path("<str:incident_id>/unack/", IncidentActionView.as_view(action="unack"), name="unack"),
    path("<str:incident_id>/resolve/", IncidentActionView.as_view(action="resolve"), name="resolve"),
    path(
        "<str:incident_id>/reassign/",
        IncidentActionView.as_view(action="reassign"),
        name="reassign",
    ),
]
