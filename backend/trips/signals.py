"""Full-snapshot broadcasts for trips and user locations."""

import logging

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Trip, UserLocation
from .schema import snapshot_from_model

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Trip)
def trip_saved(sender, instance, **kwargs):
    from realtime.notifications import broadcast_trip_snapshot
    transaction.on_commit(lambda: broadcast_trip_snapshot(instance))


@receiver(post_save, sender=UserLocation)
def user_location_saved(sender, instance, **kwargs):
    from realtime.notifications import broadcast_location_snapshot
    user_id = instance.user_id
    snapshot = snapshot_from_model(instance)
    transaction.on_commit(lambda: broadcast_location_snapshot(user_id, snapshot))
