"""
In-app notifications.

A notification is keyed per user; delivering the same key twice leaves a
single row (set-union semantics), so callers may retry freely.
"""

import logging
from typing import Optional

from django.db import transaction
from django.utils import timezone

from accounts.models import Notification, User

logger = logging.getLogger(__name__)


def notification_payload(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "key": notification.key,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type,
        "action_url": notification.action_url,
        "read": notification.read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


@transaction.atomic
def send_notification(
    user_id: int,
    key: str,
    title: str,
    message: str,
    type: str = "info",
    action_url: str = "",
) -> Optional[Notification]:
    """
    Attach a notification to a user and push it to their open connections.

    Returns the new Notification, or None if the key was already delivered.
    """
    notification, created = Notification.objects.get_or_create(
        user_id=user_id,
        key=key,
        defaults={
            "title": title,
            "message": message,
            "type": type,
            "action_url": action_url,
        },
    )
    if not created:
        logger.debug("Notification %s already delivered to user %s", key, user_id)
        return None

    User.objects.filter(id=user_id).update(
        has_unread_notifications=True,
        last_notification_at=timezone.now(),
    )

    payload = notification_payload(notification)

    def _push():
        from realtime.notifications import push_user_notification
        push_user_notification(user_id, payload)

    transaction.on_commit(_push)
    logger.info("Notification %s sent to user %s", key, user_id)
    return notification


def mark_all_read(user) -> int:
    """Mark every notification of ``user`` read; returns the number changed."""
    with transaction.atomic():
        updated = Notification.objects.filter(user=user, read=False).update(read=True)
        User.objects.filter(id=user.id).update(has_unread_notifications=False)
    return updated
