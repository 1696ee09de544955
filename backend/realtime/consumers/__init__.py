"""
WebSocket consumers for the realtime app.

Consumers:
    - LocationConsumer: a device publishing its own location
    - TripTrackingConsumer: live view of one trip for its participants
    - ChatConsumer: live chat listing and chat actions
    - PublicTrackingConsumer: anonymous view behind a tracking link
"""

from .base import BaseConsumer
from .location_consumer import LocationConsumer
from .trip_consumer import TripTrackingConsumer
from .chat_consumer import ChatConsumer
from .track_consumer import PublicTrackingConsumer

__all__ = [
    "BaseConsumer",
    "LocationConsumer",
    "TripTrackingConsumer",
    "ChatConsumer",
    "PublicTrackingConsumer",
]
