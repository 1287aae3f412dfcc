"""
Game-mode services.

A round is a single GameSession row created only when absent. Game incidents
go through the regular IncidentStore, so "first acknowledger wins" is the
store's conditional update. Reads of the session clean up an expired round
inline; the periodic task does the same for rounds nobody looks at.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from apps.alerts import monitoring
from apps.alerts.models import Incident, IncidentSeverity, IncidentState
from apps.alerts.monitoring import SignalTags
from apps.alerts.store import IncidentStore, Outcome
from apps.game.models import GameSession, Score, ScoreAward

logger = logging.getLogger(__name__)

BASE_POINTS = 10
MAX_TITLE_LENGTH = 50
TITLE_PREFIX = "[GAME] "

SEVERITY_MULTIPLIERS = {
    IncidentSeverity.INFO: 1,
    IncidentSeverity.WARNING: 2,
    IncidentSeverity.CRITICAL: 3,
}

# (elapsed seconds below, bonus), checked in order
SPEED_BONUSES = ((2, 2.0), (4, 1.5))


@dataclass
class GameResult:
    """Result of a game operation."""

    outcome: Outcome
    data: dict[str, Any] = field(default_factory=dict)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.OK


def default_display_name(user_id: str) -> str:
    return user_id.split("@")[0]


def speed_bonus(elapsed: timedelta) -> float:
    seconds = elapsed.total_seconds()
    for threshold, bonus in SPEED_BONUSES:
        if seconds < threshold:
            return bonus
    return 1.0


def compute_points(multiplier: int, elapsed: timedelta) -> int:
    return int(round(BASE_POINTS * (multiplier or 1) * speed_bonus(elapsed)))


class GameService:
    """
    Ack-race game rounds.

    Usage:
        game = GameService()
        game.start("alice@example.com")
        result = game.trigger("alice@example.com", {"title": "Disk full", "severity": "critical"})
        game.ack("bob@example.com", result.data["incident_id"])
    """

    def __init__(self, store: IncidentStore | None = None):
        self.store = store or IncidentStore()

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def config(self) -> dict[str, Any]:
        return {
            "enabled": settings.GAME_MODE_ENABLED,
            "round_duration_ms": settings.GAME_ROUND_DURATION_SECONDS * 1000,
        }

    def current_session(self) -> GameSession | None:
        """The active session, cleaning up an expired one found on the way."""
        session = GameSession.objects.filter(pk=GameSession.SINGLETON_KEY).first()
        if session is None:
            return None
        if session.is_active():
            return session
        logger.info("Game session %s expired at %s; cleaning up", session.session_id, session.ends_at)
        self._close(session)
        return None

    def session_status(self) -> dict[str, Any]:
        session = self.current_session()
        if session is None:
            return {"active": False}
        return session.to_dict()

    def start(self, caller_id: str, display_name: str = "") -> GameResult:
        if self.current_session() is not None:
            return self._already_running()

        now = timezone.now()
        try:
            with transaction.atomic():
                session = GameSession.objects.create(
                    key=GameSession.SINGLETON_KEY,
                    started_by=caller_id,
                    started_by_name=display_name or default_display_name(caller_id),
                    started_at=now,
                    ends_at=now + timedelta(seconds=settings.GAME_ROUND_DURATION_SECONDS),
                )
        except IntegrityError:
            # Someone else created the row between our read and insert.
            return self._already_running()

        logger.info("Game session %s started by %s", session.session_id, caller_id)
        monitoring.emit("game.started", SignalTags(stage="game"))
        return GameResult(
            Outcome.OK,
            {
                "ends_at": session.ends_at.isoformat(),
                "duration_ms": settings.GAME_ROUND_DURATION_SECONDS * 1000,
                "started_by": session.started_by_name,
            },
        )

    def _already_running(self) -> GameResult:
        session = self.current_session()
        if session is None:
            return GameResult(Outcome.CONFLICT, error="Game state changed, try again")
        return GameResult(
            Outcome.CONFLICT,
            {
                "ends_at": session.ends_at.isoformat(),
                "started_by": session.started_by_name or session.started_by,
                "time_remaining_ms": session.time_remaining_ms(),
            },
            error="Game already in progress",
        )

    def end(self, caller_id: str) -> GameResult:
        session = self.current_session()
        if session is None:
            return GameResult(Outcome.VALIDATION, error="No active game")
        deleted = self._close(session)
        logger.info("Game session %s ended by %s", session.session_id, caller_id)
        return GameResult(Outcome.OK, {"message": "Game ended", "incidents_deleted": deleted})

    def expire(self) -> int:
        """Close an expired session, if any. Returns the number of incidents removed."""
        session = GameSession.objects.filter(pk=GameSession.SINGLETON_KEY).first()
        if session is None or session.is_active():
            return 0
        return self._close(session)

    def _close(self, session: GameSession) -> int:
        # Only the worker that deletes this exact session row cleans up.
        removed, _ = GameSession.objects.filter(
            pk=session.pk, session_id=session.session_id
        ).delete()
        if not removed:
            return 0
        deleted = self.store.delete_game_incidents()
        monitoring.emit("game.ended", SignalTags(stage="game"), incidents_deleted=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Play
    # ------------------------------------------------------------------

    def trigger(self, caller_id: str, body: dict[str, Any]) -> GameResult:
        session = self.current_session()
        if session is None:
            return GameResult(Outcome.VALIDATION, error="No active game. Start a game first!")

        title = body.get("title")
        title = title.strip() if isinstance(title, str) else ""
        if not title:
            return GameResult(Outcome.VALIDATION, error="Title is required")
        if len(title) > MAX_TITLE_LENGTH:
            return GameResult(
                Outcome.VALIDATION, error=f"Title too long (max {MAX_TITLE_LENGTH} chars)"
            )

        severity = body.get("severity") or IncidentSeverity.WARNING
        if not isinstance(severity, str) or severity not in SEVERITY_MULTIPLIERS:
            return GameResult(
                Outcome.VALIDATION,
                error=f"severity must be one of {', '.join(IncidentSeverity.values)}",
            )

        display_name = body.get("display_name") or ""
        if not isinstance(display_name, str):
            return GameResult(Outcome.VALIDATION, error="display_name must be a string")
        display_name = display_name.strip() or default_display_name(caller_id)
        incident = self.store.create(
            alarm_name=f"{TITLE_PREFIX}{title}",
            severity=severity,
            actor=caller_id,
            expires_at=session.ends_at,
            is_game=True,
            triggered_by=caller_id,
            triggered_by_name=display_name,
            point_multiplier=SEVERITY_MULTIPLIERS[severity],
        )
        return GameResult(
            Outcome.OK,
            {
                "incident_id": str(incident.id),
                "title": incident.alarm_name,
                "time_remaining_ms": session.time_remaining_ms(),
            },
        )

    def ack(self, caller_id: str, incident_id, display_name: str = "") -> GameResult:
        session = self.current_session()
        if session is None:
            return GameResult(Outcome.VALIDATION, error="No active game")

        incident = self.store.get(incident_id)
        if incident is None:
            return GameResult(Outcome.NOT_FOUND, error="Incident not found")
        if not incident.is_game:
            return GameResult(Outcome.VALIDATION, error="Not a game incident")
        if incident.state != IncidentState.TRIGGERED:
            return self._too_slow(incident)

        display_name = display_name or default_display_name(caller_id)
        result = self.store.ack(incident.id, actor=caller_id, actor_name=display_name)
        if result.outcome is Outcome.NOT_FOUND:
            return GameResult(Outcome.NOT_FOUND, error=result.error)
        if not result.ok:
            return self._too_slow(result.incident or incident)

        won = result.incident
        points = compute_points(won.point_multiplier, won.acked_at - won.triggered_at)
        points = self._award(session, won, caller_id, display_name, points)
        monitoring.emit(
            "game.acked", SignalTags(stage="game", incident_id=str(won.id)), points=points
        )
        return GameResult(
            Outcome.OK,
            {
                "success": True,
                "points": points,
                "message": f"+{points} points!",
                "time_remaining_ms": session.time_remaining_ms(),
            },
        )

    def _too_slow(self, incident: Incident) -> GameResult:
        winner = incident.acked_by_name or "Someone"
        return GameResult(
            Outcome.OK,
            {"success": False, "points": 0, "message": f"Too slow! {winner} got it first"},
        )

    def _award(
        self,
        session: GameSession,
        incident: Incident,
        user_id: str,
        display_name: str,
        points: int,
    ) -> int:
        """Add points to the winner's score once per incident. Returns the points granted."""
        try:
            with transaction.atomic():
                ScoreAward.objects.create(
                    incident_id=incident.id,
                    session_id=session.session_id,
                    user_id=user_id,
                    points=points,
                )
                score, _ = Score.objects.select_for_update().get_or_create(
                    user_id=user_id, defaults={"display_name": display_name}
                )
                if score.round_session_id == session.session_id:
                    round_points = score.round_points + points
                else:
                    round_points = points
                Score.objects.filter(pk=score.pk).update(
                    total_points=F("total_points") + points,
                    total_acks=F("total_acks") + 1,
                    round_session_id=session.session_id,
                    round_points=round_points,
                    high_score=max(score.high_score, round_points),
                )
        except IntegrityError:
            existing = ScoreAward.objects.get(incident_id=incident.id)
            logger.info("Incident %s already scored for %s", incident.id, existing.user_id)
            return existing.points
        return points

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def active_incidents(self) -> list[dict[str, Any]]:
        incidents = Incident.objects.filter(
            is_game=True, state=IncidentState.TRIGGERED
        ).order_by("-triggered_at")
        return [i.to_dict(include_timeline=False) for i in incidents]

    def leaderboard(self, caller_id: str, size: int | None = None) -> dict[str, Any]:
        size = size or settings.GAME_LEADERBOARD_SIZE
        top = Score.objects.filter(total_points__gt=0).order_by("-total_points", "user_id")[:size]
        board = [{"rank": rank, **score.to_dict()} for rank, score in enumerate(top, start=1)]

        own = Score.objects.filter(user_id=caller_id).first()
        user = None
        if own is not None:
            ahead = Score.objects.filter(total_points__gt=own.total_points).count()
            user = {"rank": ahead + 1, **own.to_dict()}
        return {"leaderboard": board, "user": user}
