"""
Location sharing service - publishing a user's live position.

This module handles:
    - The geolocation capability the publisher consumes
    - Best-effort reverse geocoding
    - Writing and mirroring location snapshots
    - The auto-resume flag kept across reconnects
"""

from .geolocation import (
    PositionFix,
    WatchOptions,
    DEFAULT_WATCH_OPTIONS,
    GeolocationProvider,
    ClientReportedGeolocation,
)
from .geocoding import reverse_geocode, PLACEHOLDER_ADDRESS, NO_ADDRESS
from .resume import get_resume_state, set_resume_state, clear_resume_state
from .publisher import (
    LocationPublisher,
    write_initial_location,
    apply_position_update,
    mark_sharing_stopped,
    get_user_snapshot,
)

__all__ = [
    "PositionFix",
    "WatchOptions",
    "DEFAULT_WATCH_OPTIONS",
    "GeolocationProvider",
    "ClientReportedGeolocation",
    "reverse_geocode",
    "PLACEHOLDER_ADDRESS",
    "NO_ADDRESS",
    "get_resume_state",
    "set_resume_state",
    "clear_resume_state",
    "LocationPublisher",
    "write_initial_location",
    "apply_position_update",
    "mark_sharing_stopped",
    "get_user_snapshot",
]
