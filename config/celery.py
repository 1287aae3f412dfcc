"""Celery application bootstrap for this Django project.

Workers run alarm ingestion, change-log processing (push fan-out) and the
periodic cleanup jobs:
- celery -A config worker -l info
- celery -A config beat -l info

Broker/result backend and the beat schedule live in config/settings.py.
"""

from __future__ import annotations

import os

from celery import Celery

from config.env import load_env

load_env()

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("incident-relay")

# Load Celery config from Django settings using CELERY_* namespace.
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
