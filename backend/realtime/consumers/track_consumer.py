"""Public tracking-link consumer: ws/track/<user_id>/<token>/ (no login)."""

import logging

from channels.db import database_sync_to_async

from services.exceptions import TrackingLinkInvalid
from services.tracking_links import resolve_tracking_token, public_location_view
from realtime.notifications import location_group
from .base import BaseConsumer

logger = logging.getLogger(__name__)


def _current_view(user_id, token):
    return public_location_view(resolve_tracking_token(user_id, token))


class PublicTrackingConsumer(BaseConsumer):
    """Streams a tracked user's live location to anyone holding a valid link."""

    requires_auth = False

    async def on_connect(self):
        kwargs = self.scope["url_route"]["kwargs"]
        self.tracked_user_id = kwargs["user_id"]
        self.token = kwargs["token"]

        if not await self._push_view():
            return
        await self._join_group(location_group(self.tracked_user_id))

    async def handle_message(self, msg_type, data):
        if msg_type == "refresh":
            await self._push_view()
        else:
            await self.send_error("This connection is read-only")

    async def _push_view(self) -> bool:
        """Send the current view; closes the socket once the link stops being valid."""
        try:
            view = await database_sync_to_async(_current_view)(self.tracked_user_id, self.token)
        except TrackingLinkInvalid as e:
            await self.send_service_error(e)
            await self.close(code=4410)
            return False
        await self.send_json({"type": "tracking_view", **view})
        return True

    async def location_snapshot(self, event):
        await self._push_view()
