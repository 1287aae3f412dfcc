"""Celery tasks that drive the change notifier."""

from __future__ import annotations

import logging
from typing import Any

from celery import shared_task
from django.db import DatabaseError

from apps.notify.notifier import ChangeNotifier, ChangeOutOfOrder

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(ChangeOutOfOrder, DatabaseError),
    retry_backoff=2,
    retry_backoff_max=60,
    retry_jitter=True,
    max_retries=8,
    soft_time_limit=60,
)
def process_incident_change(self, change_id: int) -> dict[str, Any]:
    """Handle one change-log row; earlier changes of the same incident go first."""
    result = ChangeNotifier().process_change(change_id)
    if result.skipped:
        logger.debug("Change %s skipped: %s", change_id, result.skipped)
    return result.to_dict()


@shared_task(
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_jitter=True,
    max_retries=3,
)
def drain_pending_changes(limit: int = 500) -> int:
    """Pick up changes whose task was lost (broker outage, crashed worker)."""
    handled = ChangeNotifier().drain_pending(limit=limit)
    if handled:
        logger.info("Drained %d pending incident change(s)", handled)
    return handled
