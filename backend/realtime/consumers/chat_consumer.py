"""
Chat consumer: a live listing of the user's threads plus chat actions.

Every change to one of the user's threads triggers a fresh listing. Expired
threads found while listing are handed to a background purge after the
listing has been sent.
"""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from services.chat import (
    list_threads_for,
    open_or_create_thread,
    send_message,
    mark_read,
    delete_thread,
    get_thread_for,
)
from chats.serializers import ChatThreadSerializer, ChatMessageSerializer
from chats.tasks import purge_expired_threads
from realtime.notifications import chats_group
from .base import BaseConsumer

logger = logging.getLogger(__name__)


def _thread_payload(subject, thread_id):
    return ChatThreadSerializer(get_thread_for(subject, thread_id)).data


def _purge(thread_ids):
    purge_expired_threads.delay(thread_ids)


class ChatConsumer(BaseConsumer):
    """
    WebSocket endpoint: ws/chats/

    Client messages:
        - open_thread {other_user_id, car_info?}
        - get_thread {thread_id}
        - send_message {thread_id, text}
        - mark_read {thread_id}
        - delete_thread {thread_id}
    """

    async def on_connect(self):
        await self._join_group(chats_group(self.user_id))
        await self._push_listing()

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "open_thread":
            thread, created = await database_sync_to_async(open_or_create_thread)(
                self.user, self.user_id, data.get("other_user_id"), data.get("car_info")
            )
            payload = await database_sync_to_async(_thread_payload)(self.user, thread.id)
            await self.send_success("thread", thread=payload, created=created)

        elif msg_type == "get_thread":
            payload = await database_sync_to_async(_thread_payload)(self.user, data.get("thread_id"))
            await self.send_success("thread", thread=payload, created=False)

        elif msg_type == "send_message":
            message = await database_sync_to_async(send_message)(
                self.user, data.get("thread_id"), self.user_id, data.get("text")
            )
            await self.send_success(
                "message_sent",
                thread_id=data.get("thread_id"),
                message=dict(ChatMessageSerializer(message).data),
            )

        elif msg_type == "mark_read":
            updated = await database_sync_to_async(mark_read)(self.user, data.get("thread_id"), self.user_id)
            await self.send_success("marked_read", thread_id=data.get("thread_id"), count=updated)

        elif msg_type == "delete_thread":
            await database_sync_to_async(delete_thread)(self.user, data.get("thread_id"))
            await self.send_success("thread_deleted", thread_id=data.get("thread_id"))

        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def _push_listing(self):
        listing = await database_sync_to_async(list_threads_for)(self.user_id)
        await self.send_json({"type": "chat_threads", **listing.as_dict()})

        if listing.expired_ids:
            try:
                await database_sync_to_async(_purge)(listing.expired_ids)
            except Exception:
                # The next listing reports them again
                logger.exception("Failed to queue purge of %d expired threads", len(listing.expired_ids))

    # ---------------------- Group events ----------------------

    async def chat_threads_changed(self, event):
        await self._push_listing()
