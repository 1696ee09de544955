"""
Chat service - pre-booking conversations between customers and drivers.

This module handles:
    - Opening a thread per customer/driver/vehicle
    - Sending messages and read receipts
    - Listing a user's threads with unread counts
    - Expiring inactive threads
"""

from .threads import (
    ThreadSummary,
    ThreadListing,
    open_or_create_thread,
    send_message,
    mark_read,
    delete_thread,
    unread_count,
    list_threads_for,
    get_thread_for,
    is_expired,
    expires_at,
    expired_threads,
    purge_expired_threads,
)

__all__ = [
    "ThreadSummary",
    "ThreadListing",
    "open_or_create_thread",
    "send_message",
    "mark_read",
    "delete_thread",
    "unread_count",
    "list_threads_for",
    "get_thread_for",
    "is_expired",
    "expires_at",
    "expired_threads",
    "purge_expired_threads",
]
