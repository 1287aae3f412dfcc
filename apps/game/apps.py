"""Django app configuration for the game app."""

from django.apps import AppConfig


class GameConfig(AppConfig):
    """Configuration for the ack-race game mode."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.game"
    verbose_name = "Game Mode"
