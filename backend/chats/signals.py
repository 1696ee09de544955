"""Push "threads changed" pings to both participants whenever a chat changes."""

import logging

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import ChatMessage, ChatThread

logger = logging.getLogger(__name__)


def _notify(participant_ids, thread_id):
    from realtime.notifications import notify_chat_threads_changed
    transaction.on_commit(lambda: notify_chat_threads_changed(participant_ids, thread_id))


@receiver(post_save, sender=ChatThread)
def chat_thread_saved(sender, instance, update_fields=None, **kwargs):
    # A new message already pinged; its last_activity bump must not ping again
    if update_fields is not None and set(update_fields) == {"last_activity"}:
        return
    _notify(instance.participant_ids, instance.id)


@receiver(post_delete, sender=ChatThread)
def chat_thread_deleted(sender, instance, **kwargs):
    _notify(instance.participant_ids, instance.id)


@receiver(post_save, sender=ChatMessage)
def chat_message_saved(sender, instance, created, **kwargs):
    if created:
        thread = instance.thread
        _notify(thread.participant_ids, thread.id)
