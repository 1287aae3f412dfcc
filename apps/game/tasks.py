"""
Celery tasks for game mode.
"""

import logging

from celery import shared_task

from apps.game.services import GameService

logger = logging.getLogger(__name__)


@shared_task
def expire_game_session() -> int:
    """Close an expired round and remove its incidents."""
    deleted = GameService().expire()
    if deleted:
        logger.info("Expired game session; removed %d game incident(s)", deleted)
    return deleted
