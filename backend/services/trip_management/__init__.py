"""
Trip management service - trip lifecycle operations.

This module handles:
    - Booking a trip with a driver
    - Completing and cancelling trips
    - Rating finished trips
    - Querying a user's trips
"""

from .trip_lifecycle import (
    TripResult,
    create_trip,
    get_trip_for,
    complete_trip,
    cancel_trip,
    rate_trip,
    trip_history,
)

__all__ = [
    "TripResult",
    "create_trip",
    "get_trip_for",
    "complete_trip",
    "cancel_trip",
    "rate_trip",
    "trip_history",
]
