"""
Chat thread operations.

Messages are stored one row each, so a read receipt is a single UPDATE of
the unread rows and can never overwrite a message sent concurrently.

A thread expires once ``now - max(last_activity, created_at)`` exceeds
CHAT_THREAD_EXPIRY. Listing never deletes anything itself; it reports the
expired ids so deletion can run separately.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from django.conf import settings
from django.db import transaction
from django.db.models import Count, OuterRef, Q, Subquery
from django.db.models.functions import Coalesce, Greatest
from django.utils import timezone

from accounts.models import User
from chats.models import ChatMessage, ChatThread
from common.utils import with_retry
from services.exceptions import NotFound, PermissionDenied, ValidationError
from services.notifications import send_notification

logger = logging.getLogger(__name__)

DEFAULT_CAR_INFO = {"id": "general", "title": "Car Rental Request"}
NO_MESSAGES = "No messages yet"


@dataclass
class ThreadSummary:
    thread_id: int
    other_user_id: int
    other_user_name: str
    other_is_driver: bool
    car_info: Dict[str, str]
    last_message: str
    last_message_time: datetime
    unread_count: int
    expires_at: datetime

    def as_dict(self) -> Dict[str, Any]:
        return {
            "thread_id": self.thread_id,
            "other_user_id": self.other_user_id,
            "other_user_name": self.other_user_name,
            "other_is_driver": self.other_is_driver,
            "car_info": self.car_info,
            "last_message": self.last_message,
            "last_message_time": self.last_message_time.isoformat(),
            "unread_count": self.unread_count,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass
class ThreadListing:
    summaries: List[ThreadSummary] = field(default_factory=list)
    unread_total: int = 0
    expired_ids: List[int] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "threads": [s.as_dict() for s in self.summaries],
            "unread_total": self.unread_total,
        }


# ===================== Expiry =====================

def _reference_time(thread: ChatThread) -> datetime:
    if thread.last_activity and thread.last_activity > thread.created_at:
        return thread.last_activity
    return thread.created_at


def expires_at(thread: ChatThread) -> datetime:
    return _reference_time(thread) + settings.CHAT_THREAD_EXPIRY


def is_expired(thread: ChatThread, now: Optional[datetime] = None) -> bool:
    now = now or timezone.now()
    return now - _reference_time(thread) > settings.CHAT_THREAD_EXPIRY


def expired_threads(now: Optional[datetime] = None):
    """QuerySet of every expired thread."""
    now = now or timezone.now()
    return ChatThread.objects.annotate(
        reference_time=Greatest(Coalesce("last_activity", "created_at"), "created_at"),
    ).filter(reference_time__lt=now - settings.CHAT_THREAD_EXPIRY)


@transaction.atomic
def purge_expired_threads(thread_ids: Iterable[int], now: Optional[datetime] = None) -> int:
    """
    Delete the given threads in one batch.

    Each id is checked again first: a thread that received a message after
    it was reported expired survives.
    """
    ids = list(set(thread_ids))
    if not ids:
        return 0
    confirmed = list(expired_threads(now).filter(id__in=ids).values_list("id", flat=True))
    if not confirmed:
        return 0
    ChatThread.objects.filter(id__in=confirmed).delete()
    logger.info("Deleted %d expired chat threads", len(confirmed))
    return len(confirmed)


# ===================== Lookup =====================

def get_thread_for(subject, thread_id, lock: bool = False) -> ChatThread:
    qs = ChatThread.objects.select_for_update() if lock else ChatThread.objects.all()
    try:
        thread = qs.get(id=thread_id)
    except (ChatThread.DoesNotExist, ValueError):
        raise NotFound("Chat not found")
    if not thread.has_participant(subject.id):
        raise PermissionDenied("You are not part of this chat")
    return thread


def unread_count(thread: ChatThread, viewer_id) -> int:
    """Messages from the other participant that the viewer has not read."""
    return thread.messages.filter(read=False).exclude(sender_id=viewer_id).count()


# ===================== Operations =====================

@transaction.atomic
def open_or_create_thread(subject, participant_a_id, participant_b_id, car_info=None):
    """
    Return the thread for this pair and vehicle, creating it on first contact.

    Returns:
        (thread, created)
    """
    if subject.id not in (participant_a_id, participant_b_id):
        raise PermissionDenied("You can only open chats you take part in")
    if participant_a_id == participant_b_id:
        raise ValidationError("A chat needs two different participants")

    users = {u.id: u for u in User.objects.filter(id__in=[participant_a_id, participant_b_id])}
    if len(users) != 2:
        raise NotFound("User not found")

    car_info = car_info or {}
    car_id = str(car_info.get("id") or DEFAULT_CAR_INFO["id"])
    car_title = car_info.get("title") or DEFAULT_CAR_INFO["title"]

    first, second = sorted(users)
    thread, created = ChatThread.objects.get_or_create(
        participant_a_id=first,
        participant_b_id=second,
        car_id=car_id,
        defaults={
            "participant_names": {str(uid): user.display_name for uid, user in users.items()},
            "car_title": car_title,
            "last_activity": timezone.now(),
        },
    )

    if created:
        other_id = thread.other_participant_id(subject.id)
        sender_name = subject.display_name
        transaction.on_commit(lambda: send_notification(
            other_id,
            key=f"chat_request_{thread.id}",
            title="New Chat Request",
            message=f"{sender_name} wants to chat about {car_title}.",
            type="info",
            action_url=f"/chat?thread={thread.id}",
        ))
        logger.info("Chat thread %s opened between %s and %s", thread.id, first, second)

    return thread, created


@with_retry
@transaction.atomic
def send_message(subject, thread_id, sender_id, text) -> ChatMessage:
    if subject.id != sender_id:
        raise PermissionDenied("You can only send messages as yourself")
    text = (text or "").strip()
    if not text:
        raise ValidationError("Message text is required")

    thread = get_thread_for(subject, thread_id, lock=True)
    message = ChatMessage.objects.create(thread=thread, sender_id=sender_id, text=text)

    thread.last_activity = message.timestamp
    thread.save(update_fields=["last_activity"])
    return message


@with_retry
@transaction.atomic
def mark_read(subject, thread_id, viewer_id) -> int:
    """Mark every message the viewer received in this thread as read."""
    if subject.id != viewer_id:
        raise PermissionDenied("You can only mark your own messages read")
    thread = get_thread_for(subject, thread_id)

    updated = (
        ChatMessage.objects
        .filter(thread=thread, read=False)
        .exclude(sender_id=viewer_id)
        .update(read=True)
    )
    if updated:
        from realtime.notifications import notify_chat_threads_changed
        participants = thread.participant_ids
        transaction.on_commit(lambda: notify_chat_threads_changed(participants, thread.id))
    return updated


@transaction.atomic
def delete_thread(subject, thread_id) -> None:
    thread = get_thread_for(subject, thread_id, lock=True)
    thread.delete()
    logger.info("Chat thread %s deleted by user %s", thread_id, subject.id)


def list_threads_for(user_id, now: Optional[datetime] = None) -> ThreadListing:
    """
    Current listing of a user's chats, newest message first.

    Expired threads are left out of ``summaries`` and reported in
    ``expired_ids``.
    """
    now = now or timezone.now()
    last_message = ChatMessage.objects.filter(thread=OuterRef("pk")).order_by("-timestamp", "-id")

    threads = (
        ChatThread.objects
        .filter(Q(participant_a_id=user_id) | Q(participant_b_id=user_id))
        .select_related("participant_a", "participant_b")
        .annotate(
            unread=Count(
                "messages",
                filter=Q(messages__read=False) & ~Q(messages__sender_id=user_id),
            ),
            last_text=Subquery(last_message.values("text")[:1]),
            last_time=Subquery(last_message.values("timestamp")[:1]),
        )
        .order_by("id")
    )

    listing = ThreadListing()
    for thread in threads:
        if is_expired(thread, now):
            listing.expired_ids.append(thread.id)
            continue

        other = thread.participant_b if thread.participant_a_id == user_id else thread.participant_a
        name = other.full_name or thread.participant_names.get(str(other.id)) or other.username
        listing.summaries.append(ThreadSummary(
            thread_id=thread.id,
            other_user_id=other.id,
            other_user_name=name,
            other_is_driver=other.is_driver,
            car_info=thread.car_info,
            last_message=thread.last_text or NO_MESSAGES,
            last_message_time=thread.last_time or _reference_time(thread),
            unread_count=thread.unread,
            expires_at=expires_at(thread),
        ))

    # Stable sort keeps store order for equal timestamps
    listing.summaries.sort(key=lambda s: s.last_message_time, reverse=True)
    listing.unread_total = sum(s.unread_count for s in listing.summaries)
    return listing
