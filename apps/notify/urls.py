"""
URL configuration for device registration.
"""

from django.urls import path

from apps.notify.views import DeviceDetailView, DeviceListView

app_name = "notify"

urlpatterns = [
    path("", DeviceListView.as_view(), name="devices"),
    path("<path:token>/", DeviceDetailView.as_view(), name="device_detail"),
]
