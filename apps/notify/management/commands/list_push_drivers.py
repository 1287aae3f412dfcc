"""
Management command to list available push drivers and their requirements.

Usage:
    python manage.py list_push_drivers
    python manage.py list_push_drivers --verbose
"""

from django.conf import settings
from django.core.management.base import BaseCommand

from apps.notify.drivers import DRIVER_REGISTRY

DRIVER_INFO = {
    "log": {
        "description": "Log pushes instead of sending them (development)",
        "required_config": [],
    },
    "gateway": {
        "description": "POST platform-encoded payloads to an HTTP push relay",
        "required_config": ["endpoint"],
        "optional_config": ["api_key", "headers"],
    },
    "fcm": {
        "description": "Send through Firebase Cloud Messaging HTTP v1",
        "required_config": ["project_id", "access_token"],
    },
}


class Command(BaseCommand):
    help = "List available push drivers and their configuration requirements"

    def add_arguments(self, parser):
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Show detailed configuration requirements",
        )

    def handle(self, *args, **options):
        verbose = options.get("verbose", False)

        self.stdout.write(self.style.SUCCESS("Available Push Drivers"))
        self.stdout.write("-" * 60)

        for name in DRIVER_REGISTRY:
            info = DRIVER_INFO.get(name, {})
            marker = " (active)" if name == settings.PUSH_DRIVER else ""
            self.stdout.write(f"\n{self.style.WARNING(name)}{marker}")
            self.stdout.write(f"  {info.get('description', '')}")

            if verbose:
                required = info.get("required_config") or []
                self.stdout.write(
                    "  Required config: " + (", ".join(required) if required else "none")
                )
                optional = info.get("optional_config") or []
                if optional:
                    self.stdout.write("  Optional config: " + ", ".join(optional))

        self.stdout.write("\n" + "-" * 60)
        self.stdout.write("\nSelect a driver with PUSH_DRIVER and configure it with PUSH_CONFIG (JSON).")
