"""
Snapshot broadcast helpers.

Every group here behaves like a snapshot listener: whenever a record
changes, the full current state of that one record is sent to its group.
Consumers replace their copy wholesale and never diff against a prior
snapshot.

Groups:
    - trip_<id>:          Trip document snapshots
    - location_<user_id>: UserLocation snapshots
    - chats_<user_id>:    "your thread list changed" pings
    - user_<user_id>:     personal notifications
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)


# ---------------------- Group names ----------------------

def trip_group(trip_id) -> str:
    return f"trip_{trip_id}"


def location_group(user_id) -> str:
    return f"location_{user_id}"


def chats_group(user_id) -> str:
    return f"chats_{user_id}"


def user_group(user_id) -> str:
    return f"user_{user_id}"


# ---------------------- Sending ----------------------

def _group_send(group: str, event: Dict[str, Any]) -> bool:
    """Send to a channel group; delivery failures are logged, not raised."""
    try:
        channel_layer = get_channel_layer()
        if channel_layer is None:
            return False
        async_to_sync(channel_layer.group_send)(group, event)
        return True
    except Exception:
        logger.exception("Failed to send %s to group %s", event.get("type"), group)
        return False


def broadcast_trip_snapshot(trip) -> bool:
    """Push the full current Trip document to everyone tracking it."""
    from trips.serializers import trip_document

    return _group_send(trip_group(trip.id), {
        "type": "trip_snapshot",
        "trip_id": trip.id,
        "trip": trip_document(trip),
    })


def broadcast_location_snapshot(user_id, snapshot) -> bool:
    """Push a user's current location (``snapshot`` may be None)."""
    return _group_send(location_group(user_id), {
        "type": "location_snapshot",
        "user_id": user_id,
        "location": snapshot.to_document() if snapshot is not None else None,
    })


def notify_chat_threads_changed(user_ids: Iterable, thread_id: Optional[int] = None) -> None:
    """Tell each participant's chat list listener to re-read its threads."""
    for user_id in set(user_ids):
        _group_send(chats_group(user_id), {
            "type": "chat_threads_changed",
            "thread_id": thread_id,
        })


def push_user_notification(user_id, notification: Dict[str, Any]) -> bool:
    """Deliver an in-app notification to a user's open connections."""
    return _group_send(user_group(user_id), {
        "type": "user_notification",
        "notification": notification,
    })
