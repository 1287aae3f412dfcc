"""
Management command to drain pending incident changes through the notifier.

Useful after a broker outage, when change rows were committed but their
tasks never ran.

Usage:
    python manage.py process_incident_changes
    python manage.py process_incident_changes --limit 100
"""

from django.core.management.base import BaseCommand

from apps.alerts.models import ChangeStatus, IncidentChange
from apps.notify.notifier import ChangeNotifier


class Command(BaseCommand):
    help = "Process pending incident changes (send the pushes they warrant)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of changes to process",
        )

    def handle(self, *args, **options):
        pending = IncidentChange.objects.exclude(status=ChangeStatus.DONE).count()
        self.stdout.write(f"{pending} unfinished change(s)")

        handled = ChangeNotifier().drain_pending(limit=options.get("limit"))

        remaining = IncidentChange.objects.exclude(status=ChangeStatus.DONE).count()
        self.stdout.write(self.style.SUCCESS(f"Processed {handled} change(s), {remaining} remaining"))
