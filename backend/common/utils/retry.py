"""Retry with exponential backoff for store writes."""

import logging
import time
from functools import wraps

from django.conf import settings
from django.db import OperationalError, InterfaceError

from services.exceptions import TransientNetworkError

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, InterfaceError)


def with_retry(func=None, *, attempts=None, initial_backoff=None, max_backoff=5.0):
    """
    Retry a store write on transient database errors.

    Backoff doubles after every failed attempt, capped at ``max_backoff``.
    After the last attempt the failure is surfaced as TransientNetworkError;
    nothing is retried silently beyond that.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = attempts or settings.STORE_WRITE_RETRIES
            backoff = initial_backoff if initial_backoff is not None else settings.STORE_WRITE_BACKOFF
            for attempt in range(1, max_attempts + 1):
                try:
                    return fn(*args, **kwargs)
                except RETRYABLE_ERRORS as e:
                    if attempt == max_attempts:
                        logger.error("%s failed after %d attempts: %s", fn.__name__, attempt, e)
                        raise TransientNetworkError(f"Store write failed: {e}") from e
                    logger.warning(
                        "[%d/%d] %s failed (%s), retrying in %.1fs",
                        attempt, max_attempts, fn.__name__, e, backoff,
                    )
                    time.sleep(backoff)
                    backoff = min(backoff * 2, max_backoff)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
