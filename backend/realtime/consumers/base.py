"""Shared plumbing for every WebSocket endpoint: auth gate, group bookkeeping, error frames."""

import logging
from typing import Dict, Any, Set

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from services.exceptions import ServiceError, LocationError
from realtime.notifications import user_group

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Subclasses implement:
        - on_connect(): join snapshot groups and push the initial state
        - handle_message(msg_type, data): client actions

    A ServiceError raised from handle_message becomes an error frame
    carrying the error's code; the socket stays open.
    """

    # Public endpoints (tracking links) turn this off
    requires_auth = True

    async def connect(self):
        self.user = self.scope.get("user")
        self.user_id = getattr(self.user, "id", None)
        self.joined_groups: Set[str] = set()

        if self.requires_auth:
            if self.user is None or self.user.is_anonymous:
                await self.close()
                return
            await self._join_group(user_group(self.user_id))

        await self.accept()
        await self.on_connect()

    async def on_connect(self):
        await self.send_json({"type": "connection_established", "user_id": self.user_id})

    async def disconnect(self, close_code):
        try:
            for group in list(getattr(self, "joined_groups", ())):
                await self._leave_group(group)
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Cleanup failed for user %s (code %s)", getattr(self, "user_id", None), close_code)

    async def on_disconnect(self, close_code):
        pass

    async def receive_json(self, data: Dict[str, Any]):
        msg_type = data.get("type") if isinstance(data, dict) else None
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, data)
        except ServiceError as e:
            await self.send_service_error(e)
        except Exception:
            logger.exception("Unhandled error in %s for message %s", type(self).__name__, msg_type)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Groups ----------------------

    async def _join_group(self, group_name: str):
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    # ---------------------- Replies ----------------------

    async def send_error(self, message: str, code: str = "error"):
        await self.send_json({"type": "error", "message": message, "code": code})

    async def send_service_error(self, exc: ServiceError):
        # Geolocation errors carry a fixed user-facing message per variant
        message = exc.user_message if isinstance(exc, LocationError) else str(exc)
        await self.send_error(message, code=exc.code)

    async def send_success(self, event_type: str, **kwargs):
        await self.send_json({"type": event_type, **kwargs})

    # ---------------------- Group events ----------------------

    async def user_notification(self, event):
        """In-app notification pushed to the user_<id> group."""
        await self.send_json({"type": "notification", "notification": event.get("notification")})
