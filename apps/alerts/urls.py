"""
URL configuration for the alarm webhook.
"""

from django.urls import path

from apps.alerts.views import AlarmWebhookView


app_name = "alerts"

urlpatterns = [
    # Generic webhook (auto-detect driver)
    path("webhook/", AlarmWebhookView.as_view(), name="webhook"),

    # Driver-specific webhooks
    path("webhook/<str:driver>/", AlarmWebhookView.as_view(), name="webhook_driver"),
]
