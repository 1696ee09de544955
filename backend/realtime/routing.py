"""WebSocket URL routing for the realtime app."""

from django.urls import re_path

from .consumers import (
    LocationConsumer,
    TripTrackingConsumer,
    ChatConsumer,
    PublicTrackingConsumer,
)

websocket_urlpatterns = [
    # Publish my own location
    # URL: ws://localhost:8000/ws/location/
    re_path(
        r"ws/location/$",
        LocationConsumer.as_asgi(),
        name="location-ws"
    ),

    # Live tracker for one trip (driver or customer only)
    # URL: ws://localhost:8000/ws/trips/<trip_id>/track/
    re_path(
        r"ws/trips/(?P<trip_id>\d+)/track/$",
        TripTrackingConsumer.as_asgi(),
        name="trip-track-ws"
    ),

    # Chat listing and actions
    # URL: ws://localhost:8000/ws/chats/
    re_path(
        r"ws/chats/$",
        ChatConsumer.as_asgi(),
        name="chats-ws"
    ),

    # Public tracking link, no login
    # URL: ws://localhost:8000/ws/track/<user_id>/<token>/
    re_path(
        r"ws/track/(?P<user_id>\d+)/(?P<token>[\w-]+)/$",
        PublicTrackingConsumer.as_asgi(),
        name="public-track-ws"
    ),
]
