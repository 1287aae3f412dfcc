"""
Management command to feed an alarm payload through the ingestion adapter.

Usage:
    python manage.py ingest_alarm alarm.json
    python manage.py ingest_alarm alarm.json --driver cloudwatch
    cat alarm.json | python manage.py ingest_alarm -
"""

import json
import sys

from django.core.management.base import BaseCommand, CommandError

from apps.alerts.drivers import DRIVER_REGISTRY
from apps.alerts.services import AlarmIngestor
from apps.alerts.store import Outcome


class Command(BaseCommand):
    help = "Ingest an alarm payload from a JSON file (or '-' for stdin)"

    def add_arguments(self, parser):
        parser.add_argument(
            "path",
            type=str,
            help="Path to a JSON payload, or '-' to read from stdin",
        )
        parser.add_argument(
            "--driver",
            type=str,
            choices=list(DRIVER_REGISTRY.keys()),
            default=None,
            help="Driver to parse the payload with (default: auto-detect)",
        )

    def handle(self, *args, **options):
        path = options["path"]
        try:
            if path == "-":
                payload = json.load(sys.stdin)
            else:
                with open(path, encoding="utf-8") as fh:
                    payload = json.load(fh)
        except OSError as e:
            raise CommandError(f"Cannot read {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise CommandError(f"Invalid JSON in {path}: {e}") from e

        if not isinstance(payload, dict):
            raise CommandError("Payload must be a JSON object")

        result = AlarmIngestor().process_webhook(payload, driver=options["driver"])
        if result.outcome is Outcome.VALIDATION:
            raise CommandError("; ".join(result.errors))

        if result.control_message:
            self.stdout.write(f"Control message acknowledged: {result.control_message}")

        for incident_id in result.incidents_created:
            self.stdout.write(self.style.SUCCESS(f"Created incident {incident_id}"))
        if result.alarms_ignored:
            self.stdout.write(f"Ignored {result.alarms_ignored} non-ALARM state change(s)")
        for message in result.unrouted + result.errors:
            self.stdout.write(self.style.WARNING(message))
