"""Celery tasks for alarm ingestion and incident housekeeping."""

from __future__ import annotations

import logging
from typing import Any

from celery import shared_task
from django.db import DatabaseError

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=3,
    soft_time_limit=30,
)
def ingest_alarm_payload(self, payload: dict[str, Any], driver: str | None = None) -> dict[str, Any]:
    """Run an alarm webhook payload through the ingestor in the background."""
    from apps.alerts.services import AlarmIngestor

    result = AlarmIngestor().process_webhook(payload, driver=driver)
    if result.has_errors:
        logger.warning("Alarm ingestion reported problems: %s", result.errors + result.unrouted)
    return {"outcome": result.outcome.value, **result.to_dict()}


@shared_task(
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=3,
)
def purge_expired_incidents() -> int:
    """Delete incidents past their expires_at."""
    from apps.alerts.store import IncidentStore

    return IncidentStore().purge_expired()
