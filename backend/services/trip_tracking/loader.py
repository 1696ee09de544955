"""Initial state for a new trip subscriber."""

import logging

from services.exceptions import NotFound, PermissionDenied
from trips.models import Trip, UserLocation
from trips.schema import snapshot_from_model
from .tracker import TripTracker

logger = logging.getLogger(__name__)


def authorize_tracker(subject, trip_id) -> Trip:
    """Only the trip's driver or customer may watch it."""
    try:
        trip = Trip.objects.get(id=trip_id)
    except (Trip.DoesNotExist, ValueError):
        raise NotFound("Trip not found")
    if subject is None or trip.side_of(subject.id) is None:
        raise PermissionDenied("You are not part of this trip")
    return trip


def build_tracker_for_trip(trip: Trip) -> TripTracker:
    """Tracker pre-loaded with the current trip and both participants' locations."""
    from trips.serializers import trip_document

    tracker = TripTracker(trip.id, driver_id=trip.driver_id, customer_id=trip.customer_id)
    tracker.apply_trip(trip_document(trip))

    locations = {
        loc.user_id: loc
        for loc in UserLocation.objects.filter(user_id__in=[trip.driver_id, trip.customer_id])
    }
    tracker.apply_driver(snapshot_from_model(locations.get(trip.driver_id)))
    tracker.apply_customer(snapshot_from_model(locations.get(trip.customer_id)))
    return tracker
