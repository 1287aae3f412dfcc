"""
Management command to inspect or end the game round.

Usage:
    python manage.py game_session
    python manage.py game_session --end
"""

from django.core.management.base import BaseCommand

from apps.game.services import GameService


class Command(BaseCommand):
    help = "Show the current game session, or end it"

    def add_arguments(self, parser):
        parser.add_argument(
            "--end",
            action="store_true",
            help="End the active round and delete its game incidents",
        )

    def handle(self, *args, **options):
        game = GameService()
        if options["end"]:
            result = game.end("cli")
            if not result.ok:
                self.stdout.write(self.style.WARNING(result.error))
                return
            self.stdout.write(
                self.style.SUCCESS(
                    f"Game ended, {result.data['incidents_deleted']} incident(s) deleted"
                )
            )
            return

        status = game.session_status()
        if not status["active"]:
            self.stdout.write("No active game")
            return
        self.stdout.write(
            f"Game by {status['started_by']} ends at {status['ends_at']} "
            f"({status['time_remaining_ms'] // 1000}s left)"
        )
        for row in game.leaderboard("")["leaderboard"]:
            self.stdout.write(f"  {row['rank']:>3}. {row['display_name']:<24} {row['total_points']}")
