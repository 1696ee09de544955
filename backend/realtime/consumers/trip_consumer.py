"""
Trip tracking consumer.

Subscribes a trip participant to three independent groups (the trip and
both participants' locations) and pushes a fresh tracker view whenever
any of them delivers a snapshot.
"""

import logging
from typing import Dict, Any

from channels.db import database_sync_to_async

from services.exceptions import ServiceError
from services.trip_tracking import authorize_tracker, build_tracker_for_trip
from realtime.notifications import trip_group, location_group
from .base import BaseConsumer

logger = logging.getLogger(__name__)


def _load_tracker(subject, trip_id):
    trip = authorize_tracker(subject, trip_id)
    return build_tracker_for_trip(trip)


class TripTrackingConsumer(BaseConsumer):
    """
    WebSocket endpoint: ws/trips/<trip_id>/track/

    Client messages:
        - subscribe: (re)load state and join the trip's groups
        - unsubscribe: leave every trip group
    """

    async def on_connect(self):
        self.trip_id = self.scope["url_route"]["kwargs"]["trip_id"]
        self.tracker = None
        self.tracking_groups = []

        try:
            await self._subscribe()
        except ServiceError as e:
            await self.send_service_error(e)
            await self.close(code=4403)

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "subscribe":
            await self._subscribe()
        elif msg_type == "unsubscribe":
            await self._unsubscribe()
            await self.send_success("unsubscribed", trip_id=self.trip_id)
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    async def _subscribe(self):
        tracker = await database_sync_to_async(_load_tracker)(self.user, self.trip_id)
        await self._unsubscribe()

        self.tracker = tracker
        self.tracking_groups = [
            trip_group(tracker.trip_id),
            location_group(tracker.driver_id),
            location_group(tracker.customer_id),
        ]
        for group in self.tracking_groups:
            await self._join_group(group)

        await self._push_view()

    async def _unsubscribe(self):
        for group in self.tracking_groups:
            await self._leave_group(group)
        self.tracking_groups = []
        self.tracker = None

    async def _push_view(self):
        await self.send_json({
            "type": "tracker_view",
            "trip_id": self.tracker.trip_id,
            **self.tracker.view().as_dict(),
        })

    # ---------------------- Group events ----------------------

    async def trip_snapshot(self, event):
        if self.tracker is None:
            return
        self.tracker.apply_trip(event.get("trip"))
        await self._push_view()

    async def location_snapshot(self, event):
        if self.tracker is None:
            return
        if self.tracker.apply_location(event.get("user_id"), event.get("location")):
            await self._push_view()
