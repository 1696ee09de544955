"""Celery tasks for chat expiry."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def purge_expired_threads(thread_ids):
    """Delete threads a listing reported as expired, in one batch."""
    from services.chat import purge_expired_threads as purge

    deleted = purge(thread_ids)
    logger.info("Expiry purge removed %d of %d reported threads", deleted, len(thread_ids))
    return deleted


@shared_task
def sweep_expired_threads():
    """Periodic sweep for threads nobody has listed recently."""
    from services.chat import expired_threads

    deleted, _ = expired_threads().delete()
    if deleted:
        logger.info("Expiry sweep deleted %d rows", deleted)
    return deleted
