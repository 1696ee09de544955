"""
Realtime app for WebSocket communication.

This app provides:
- WebSocket consumers for location publishing, trip tracking, chats and
  public tracking links
- Snapshot broadcast helpers that push full record state to channel groups
- JWT/Cookie authentication middleware for WebSocket connections

Key Components:
    - consumers/: WebSocket consumers (location, trip, chat, track)
    - notifications.py: Group names and snapshot broadcast helpers

Usage:
    from realtime.consumers import LocationConsumer, TripTrackingConsumer
    from realtime.notifications import broadcast_trip_snapshot, push_user_notification
"""
