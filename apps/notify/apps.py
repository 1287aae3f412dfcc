"""Django app configuration for the notify app."""

from django.apps import AppConfig


class NotifyConfig(AppConfig):
    """Configuration for the push notification app."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.notify"
    verbose_name = "Push Notifications"

    def ready(self):
        from apps.alerts.store import incident_changed
        from apps.notify.signals import enqueue_incident_change

        incident_changed.connect(
            enqueue_incident_change, dispatch_uid="notify.enqueue_incident_change"
        )
