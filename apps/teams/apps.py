"""Django app configuration for the teams app."""

from django.apps import AppConfig


class TeamsConfig(AppConfig):
    """Configuration for teams, accounts and on-call schedules."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.teams"
    verbose_name = "Teams & Schedules"
