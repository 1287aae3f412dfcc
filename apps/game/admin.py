"""Admin configuration for game models."""

from django.contrib import admin, messages
from django_object_actions import DjangoObjectActions
from django_object_actions import action as object_action

from apps.game.models import GameSession, Score, ScoreAward
from apps.game.services import GameService


@admin.register(GameSession)
class GameSessionAdmin(DjangoObjectActions, admin.ModelAdmin):
    """Admin for the game session row."""

    list_display = ["session_id", "started_by", "started_by_name", "started_at", "ends_at", "active"]
    readonly_fields = ["key", "session_id", "started_by", "started_by_name", "started_at", "ends_at"]
    change_actions = ["end_round"]

    def has_add_permission(self, request):
        return False

    @admin.display(description="Active", boolean=True)
    def active(self, obj):
        return obj.is_active()

    @object_action(label="End round", description="End the round and delete its game incidents")
    def end_round(self, request, obj):
        result = GameService().end(f"admin:{request.user.get_username()}")
        if result.ok:
            messages.success(request, f"Round ended, {result.data['incidents_deleted']} incident(s) removed.")
        else:
            messages.warning(request, result.error)


@admin.register(Score)
class ScoreAdmin(admin.ModelAdmin):
    """Admin for Score model."""

    list_display = ["user_id", "display_name", "total_points", "total_acks", "high_score", "updated_at"]
    search_fields = ["user_id", "display_name"]
    readonly_fields = ["round_session_id", "round_points", "updated_at"]


@admin.register(ScoreAward)
class ScoreAwardAdmin(admin.ModelAdmin):
    """Read-only admin for score awards."""

    list_display = ["incident_id", "user_id", "points", "session_id", "created_at"]
    search_fields = ["user_id", "incident_id"]
    readonly_fields = ["incident_id", "session_id", "user_id", "points", "created_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
