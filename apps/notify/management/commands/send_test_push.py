"""
Management command to push a test notification to a responder's devices.

Usage:
    python manage.py send_test_push alice@example.com
    python manage.py send_test_push alice@example.com --driver gateway --json-config '{"endpoint": "..."}'
"""

import json

from django.core.management.base import BaseCommand, CommandError

from apps.notify.drivers import DRIVER_REGISTRY, PushNotification
from apps.notify.services import PushDispatcher


class Command(BaseCommand):
    help = "Send a test push notification to every device of a responder"

    def add_arguments(self, parser):
        parser.add_argument("user_id", type=str, help="Responder whose devices receive the push")
        parser.add_argument(
            "--driver",
            type=str,
            choices=list(DRIVER_REGISTRY.keys()),
            default=None,
            help="Push driver (default: settings.PUSH_DRIVER)",
        )
        parser.add_argument(
            "--json-config",
            type=str,
            help="Driver configuration as JSON string (default: settings.PUSH_CONFIG)",
        )
        parser.add_argument("--title", type=str, default="Test notification")
        parser.add_argument("--body", type=str, default="Push delivery is working")
        parser.add_argument(
            "--level",
            type=str,
            choices=["passive", "active", "time-sensitive", "critical"],
            default="active",
            help="Interruption level (default: 'active')",
        )

    def handle(self, *args, **options):
        config = None
        if options.get("json_config"):
            try:
                config = json.loads(options["json_config"])
            except json.JSONDecodeError as e:
                raise CommandError(f"Invalid JSON config: {e}") from e

        dispatcher = PushDispatcher(driver=options.get("driver"), config=config)
        if not dispatcher.driver.validate_config(dispatcher.config):
            raise CommandError(f"Invalid configuration for driver '{dispatcher.driver.name}'")

        notification = PushNotification(
            title=options["title"],
            body=options["body"],
            interruption_level=options["level"],
            data={"kind": "test"},
        )
        result = dispatcher.send_to_user(options["user_id"], notification)

        if not result.attempted:
            self.stdout.write(self.style.WARNING(f"No devices registered for {options['user_id']}"))
            return

        self.stdout.write(
            f"Sent via {dispatcher.driver.name}: {result.succeeded}/{result.attempted} succeeded"
        )
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))
        if result.pruned:
            self.stdout.write(self.style.WARNING(f"Removed {result.pruned} unregistered device(s)"))
