"""
Location publishing consumer.

The device pushes its fixes over this socket; the server side runs a
LocationPublisher against them.

Client messages:
    - start_sharing {lat, lng, accuracy?, timestamp?, trip_id?, vehicle_id?}
      or {error: "permission_denied" | "position_unavailable" | "timeout"}
    - position {lat, lng, accuracy?, timestamp?}
    - position_error {code}
    - stop_sharing {trip_id?}
"""

import logging
from typing import Dict, Any

from asgiref.sync import sync_to_async
from channels.db import database_sync_to_async

from services.location_sharing import (
    ClientReportedGeolocation,
    LocationPublisher,
    PositionFix,
    get_resume_state,
)
from realtime.notifications import location_group
from .base import BaseConsumer

logger = logging.getLogger(__name__)


class LocationConsumer(BaseConsumer):
    """WebSocket endpoint a device uses to publish its own location."""

    async def on_connect(self):
        self.geolocation = ClientReportedGeolocation()
        self.publisher = LocationPublisher(self.geolocation)

        # Hear about our own location so a stop made elsewhere ends the watch here
        await self._join_group(location_group(self.user_id))

        resume = await sync_to_async(get_resume_state)(self.user_id)
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "resume_sharing": resume is not None,
            "resume": resume,
        })

    async def on_disconnect(self, close_code):
        # Keep the store and resume flag as they are; the device may reconnect
        publisher = getattr(self, "publisher", None)
        if publisher is not None:
            publisher.detach()

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "start_sharing":
            await self._start_sharing(data)
        elif msg_type == "position":
            await self._position(data)
        elif msg_type == "position_error":
            await self._position_error(data.get("code"))
        elif msg_type == "stop_sharing":
            await self._stop_sharing(data)
        elif msg_type == "ping":
            await self.send_success("pong")
        else:
            await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Handlers ----------------------

    async def _start_sharing(self, data):
        if data.get("error"):
            await database_sync_to_async(self.geolocation.report_error)(data["error"])
        else:
            fix = PositionFix.from_payload(data)
            await database_sync_to_async(self.geolocation.report_position)(fix)

        snapshot = await database_sync_to_async(self.publisher.start_sharing)(
            self.user,
            self.user_id,
            trip_id=data.get("trip_id"),
            vehicle_id=data.get("vehicle_id"),
        )
        await self.send_success(
            "sharing_started",
            trip_id=data.get("trip_id"),
            location=snapshot.to_document(),
            watch_options={
                "enable_high_accuracy": self.publisher.options.enable_high_accuracy,
                "timeout": self.publisher.options.timeout,
                "maximum_age": self.publisher.options.maximum_age,
            },
        )

    async def _position(self, data):
        if not self.publisher.is_sharing:
            await self.send_error("Location sharing is not active", code="state_conflict")
            return
        fix = PositionFix.from_payload(data)
        await database_sync_to_async(self.geolocation.report_position)(fix)

    async def _position_error(self, code):
        was_sharing = self.publisher.is_sharing
        error = await database_sync_to_async(self.geolocation.report_error)(code or "")
        await self.send_error(error.user_message, code=error.code)
        if was_sharing:
            await self.send_success("sharing_stopped", reason=error.code)

    async def _stop_sharing(self, data):
        await database_sync_to_async(self.publisher.stop_sharing)(
            self.user, self.user_id, trip_id=data.get("trip_id")
        )
        await self.send_success("sharing_stopped", reason="stopped")

    # ---------------------- Group events ----------------------

    async def location_snapshot(self, event):
        """Our own location changed; end the local watch if sharing was stopped elsewhere."""
        location = event.get("location") or {}
        if self.publisher.is_sharing and not location.get("is_sharing"):
            self.publisher.detach()
            await self.send_success("sharing_stopped", reason="stopped_elsewhere")
        await self.send_json({
            "type": "location",
            "location": event.get("location"),
        })
