"""
Trip tracking service - the live view of one trip.

This module handles:
    - Combining trip, driver and customer snapshots into one view
    - The progress / eta / status tables
    - Loading the initial state of a trip for a new subscriber
"""

from .tracker import (
    TripTracker,
    TrackerView,
    SharingState,
    sharing_state,
    PROGRESS,
    ETA,
    STATUS_MESSAGES,
)
from .loader import build_tracker_for_trip, authorize_tracker

__all__ = [
    "TripTracker",
    "TrackerView",
    "SharingState",
    "sharing_state",
    "PROGRESS",
    "ETA",
    "STATUS_MESSAGES",
    "build_tracker_for_trip",
    "authorize_tracker",
]
