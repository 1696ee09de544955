"""
Trip tracker.

Holds the latest trip, driver-location and customer-location snapshots.
Each snapshot replaces the previous one for its source; sources may arrive
in any order and the view is rendered from whatever has arrived so far.
"""

import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional

from common.utils import calculate_distance
from trips.schema import LocationSnapshot, live_or_none, normalize_location


class SharingState(enum.Enum):
    BOTH = "both"
    DRIVER_ONLY = "driver"
    CUSTOMER_ONLY = "customer"
    NEITHER = "neither"


PROGRESS = {
    SharingState.BOTH: 75,
    SharingState.DRIVER_ONLY: 65,
    SharingState.CUSTOMER_ONLY: 35,
    SharingState.NEITHER: 10,
}

# Display hints only, not routing data
ETA = {
    SharingState.BOTH: "10-15 mins",
    SharingState.DRIVER_ONLY: "15-20 mins",
    SharingState.CUSTOMER_ONLY: "Driver assigned soon",
    SharingState.NEITHER: "Starting soon",
}

STATUS_MESSAGES = {
    SharingState.BOTH: "Both locations active",
    SharingState.DRIVER_ONLY: "Driver en route",
    SharingState.CUSTOMER_ONLY: "Customer ready",
    SharingState.NEITHER: "Awaiting location",
}


def sharing_state(driver: Optional[LocationSnapshot], customer: Optional[LocationSnapshot]) -> SharingState:
    if driver is not None and customer is not None:
        return SharingState.BOTH
    if driver is not None:
        return SharingState.DRIVER_ONLY
    if customer is not None:
        return SharingState.CUSTOMER_ONLY
    return SharingState.NEITHER


@dataclass
class TrackerView:
    trip: Optional[Dict[str, Any]]
    driver_location: Optional[LocationSnapshot]
    customer_location: Optional[LocationSnapshot]
    state: SharingState

    @property
    def progress(self) -> int:
        return PROGRESS[self.state]

    @property
    def eta(self) -> str:
        return ETA[self.state]

    @property
    def status_message(self) -> str:
        return STATUS_MESSAGES[self.state]

    @property
    def distance_meters(self) -> Optional[float]:
        if self.state is not SharingState.BOTH:
            return None
        if self.driver_location.lng is None or self.customer_location.lng is None:
            return None
        return round(calculate_distance(
            self.driver_location.lat, self.driver_location.lng,
            self.customer_location.lat, self.customer_location.lng,
        ), 1)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "trip": self.trip,
            "driver_location": self.driver_location.to_document() if self.driver_location else None,
            "customer_location": self.customer_location.to_document() if self.customer_location else None,
            "driver_sharing": self.driver_location is not None,
            "customer_sharing": self.customer_location is not None,
            "progress": self.progress,
            "eta": self.eta,
            "status_message": self.status_message,
            "distance_meters": self.distance_meters,
        }


class TripTracker:
    """Latest-state holder for one trip subscription."""

    def __init__(self, trip_id, driver_id=None, customer_id=None):
        self.trip_id = trip_id
        self.driver_id = driver_id
        self.customer_id = customer_id
        self._trip: Optional[Dict[str, Any]] = None
        self._driver: Optional[LocationSnapshot] = None
        self._customer: Optional[LocationSnapshot] = None

    def apply_trip(self, trip_document: Optional[Dict[str, Any]]) -> None:
        self._trip = trip_document

    def apply_driver(self, location) -> None:
        self._driver = live_or_none(_as_snapshot(location))

    def apply_customer(self, location) -> None:
        self._customer = live_or_none(_as_snapshot(location))

    def apply_location(self, user_id, location) -> bool:
        """Route a location snapshot to its side; returns False for unrelated users."""
        if user_id == self.driver_id:
            self.apply_driver(location)
        elif user_id == self.customer_id:
            self.apply_customer(location)
        else:
            return False
        return True

    def view(self) -> TrackerView:
        return TrackerView(
            trip=self._trip,
            driver_location=self._driver,
            customer_location=self._customer,
            state=sharing_state(self._driver, self._customer),
        )


def _as_snapshot(location) -> Optional[LocationSnapshot]:
    if location is None or isinstance(location, LocationSnapshot):
        return location
    return normalize_location(location)
