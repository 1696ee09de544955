"""
Account deletion.

Removes a user together with everything that belongs to them: booking
requests and offers, chat threads (the other participant's copy goes too),
trips, locations, tracking links, notifications and referral entries.
Sharing is stopped first so no trip keeps a live copy of the position.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

from django.db import transaction
from django.db.models import Q

from accounts.models import User
from chats.models import ChatThread
from services.exceptions import NotFound
from services.location_sharing import mark_sharing_stopped

logger = logging.getLogger(__name__)


@dataclass
class DeletionStats:
    user_id: int
    username: str
    records_deleted: int
    per_model: Dict[str, int] = field(default_factory=dict)

    def as_dict(self):
        return {
            "user_id": self.user_id,
            "username": self.username,
            "records_deleted": self.records_deleted,
            "per_model": self.per_model,
        }


@transaction.atomic
def delete_account(subject) -> DeletionStats:
    """Permanently delete ``subject`` and all of their data."""
    user = User.objects.select_for_update().filter(id=subject.id).first()
    if user is None:
        raise NotFound("User not found")

    mark_sharing_stopped(user.id)

    # Threads reference the user twice; delete them up front so both sides get pinged once
    threads_deleted, thread_rows = ChatThread.objects.filter(
        Q(participant_a=user) | Q(participant_b=user)
    ).delete()

    user_id, username = user.id, user.username
    deleted, per_model = user.delete()

    counts = dict(thread_rows)
    for label, count in per_model.items():
        counts[label] = counts.get(label, 0) + count
    counts = {label: count for label, count in counts.items() if count}

    logger.info("Account %s (%s) deleted with %d records", user_id, username, threads_deleted + deleted)
    return DeletionStats(
        user_id=user_id,
        username=username,
        records_deleted=threads_deleted + deleted,
        per_model=counts,
    )
