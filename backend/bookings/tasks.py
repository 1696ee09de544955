"""Celery tasks for booking request expiry."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def expire_booking_requests():
    """Periodic pass closing requests nobody answered in time."""
    from services.bookings import expire_stale_requests

    expired = expire_stale_requests()
    if expired:
        logger.info("Expired %d booking requests", expired)
    return expired
