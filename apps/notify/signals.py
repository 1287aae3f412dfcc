"""Change feed subscription: every committed incident change becomes a task."""

import logging

logger = logging.getLogger(__name__)


def enqueue_incident_change(sender, change_id, incident_id, sequence, **kwargs):
    from apps.notify.tasks import process_incident_change

    logger.debug("Queueing change %s (%s#%s)", change_id, incident_id, sequence)
    process_incident_change.delay(change_id)
