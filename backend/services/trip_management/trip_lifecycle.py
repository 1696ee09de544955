"""
Core trip lifecycle operations.

A trip is created ``active`` and ends either ``completed`` (by the driver)
or ``cancelled`` (by either participant). Ending a trip stops location
sharing for both sides. A finished trip only accepts a rating.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from accounts.models import User
from services.exceptions import NotFound, PermissionDenied, StateConflict, ValidationError
from services.location_sharing import mark_sharing_stopped
from services.notifications import send_notification
from trips.models import Trip, UserLocation
from trips.schema import normalize_location

logger = logging.getLogger(__name__)


@dataclass
class TripResult:
    """Result object for trip operations."""
    success: bool
    trip: Optional[Trip] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


def get_trip_for(subject, trip_id) -> Trip:
    """Fetch a trip the subject takes part in."""
    try:
        trip = Trip.objects.select_related("driver", "customer").get(id=trip_id)
    except (Trip.DoesNotExist, ValueError):
        raise NotFound("Trip not found")
    if trip.side_of(subject.id) is None:
        raise PermissionDenied("You are not part of this trip")
    return trip


def trip_history(subject):
    """Every trip the subject took part in, newest first."""
    return Trip.objects.filter(
        Q(driver=subject) | Q(customer=subject)
    ).select_related("driver", "customer")


@transaction.atomic
def create_trip(
    customer,
    driver_id: int,
    pickup_location: str,
    destination: str,
    vehicle_id: str = "",
) -> TripResult:
    """
    Book a trip with a driver.

    Raises:
        ValidationError: missing addresses, or booking yourself
        NotFound: driver does not exist or is not a driver
    """
    if not pickup_location or not destination:
        raise ValidationError("pickup_location and destination are required")
    if driver_id == customer.id:
        raise ValidationError("You cannot book a trip with yourself")

    try:
        driver = User.objects.get(id=driver_id, is_driver=True)
    except (User.DoesNotExist, ValueError):
        raise NotFound("Driver not found")

    trip = Trip.objects.create(
        driver=driver,
        customer=customer,
        pickup_location=pickup_location,
        destination=destination,
        vehicle_id=vehicle_id or "",
        status="active",
    )

    customer_name = customer.display_name
    transaction.on_commit(lambda: send_notification(
        driver.id,
        key=f"trip_created_{trip.id}",
        title="New trip booked",
        message=f"{customer_name} booked a trip from {pickup_location} to {destination}.",
        type="info",
        action_url=f"/trips/{trip.id}",
    ))

    logger.info("Trip %s created: customer %s, driver %s", trip.id, customer.id, driver.id)
    return TripResult(success=True, trip=trip, message="Trip booked successfully")


def _end_trip(trip: Trip, status: str, timestamp_field: str) -> None:
    """Move an active trip to a terminal status and stop both sides sharing."""
    for side in ("driver", "customer"):
        mirrored = normalize_location(getattr(trip, f"{side}_location"))
        if mirrored is not None and mirrored.is_sharing:
            mirrored.is_sharing = False
            setattr(trip, f"{side}_location", mirrored.to_document())

    trip.status = status
    setattr(trip, timestamp_field, timezone.now())
    trip.save(update_fields=[
        "status", timestamp_field, "driver_location", "customer_location",
    ])

    sharing_for_trip = UserLocation.objects.filter(trip=trip).values_list("user_id", flat=True)
    for user_id in list(sharing_for_trip):
        mark_sharing_stopped(user_id)


@transaction.atomic
def complete_trip(driver, trip_id) -> TripResult:
    """Complete a trip; only its driver may do this."""
    try:
        trip = Trip.objects.select_for_update().get(id=trip_id)
    except (Trip.DoesNotExist, ValueError):
        raise NotFound("Trip not found")
    if trip.driver_id != driver.id:
        raise PermissionDenied("Only the driver can complete this trip")
    if trip.is_terminal:
        raise StateConflict(f"Trip is already {trip.status}")

    _end_trip(trip, "completed", "completed_at")

    customer_id = trip.customer_id
    transaction.on_commit(lambda: send_notification(
        customer_id,
        key=f"trip_completed_{trip.id}",
        title="Trip completed",
        message="Your trip has been completed. Thank you for riding with us!",
        type="success",
        action_url=f"/trips/{trip.id}",
    ))

    logger.info("Trip %s completed by driver %s", trip.id, driver.id)
    return TripResult(success=True, trip=trip, message="Trip completed successfully")


@transaction.atomic
def cancel_trip(subject, trip_id) -> TripResult:
    """Cancel an active trip; either participant may do this."""
    try:
        trip = Trip.objects.select_for_update().get(id=trip_id)
    except (Trip.DoesNotExist, ValueError):
        raise NotFound("Trip not found")
    side = trip.side_of(subject.id)
    if side is None:
        raise PermissionDenied("You are not part of this trip")
    if trip.is_terminal:
        raise StateConflict(f"Cannot cancel - trip is already {trip.status}")

    _end_trip(trip, "cancelled", "cancelled_at")

    other_id = trip.customer_id if side == "driver" else trip.driver_id
    by_whom = "Driver" if side == "driver" else "Customer"
    transaction.on_commit(lambda: send_notification(
        other_id,
        key=f"trip_cancelled_{trip.id}",
        title="Trip cancelled",
        message=f"{by_whom} cancelled this trip.",
        type="warning",
        action_url=f"/trips/{trip.id}",
    ))

    logger.info("Trip %s cancelled by %s %s", trip.id, side, subject.id)
    return TripResult(success=True, trip=trip, message="Trip cancelled successfully")


@transaction.atomic
def rate_trip(customer, trip_id, rating: int, review: str = "") -> TripResult:
    """Rate a finished trip; only its customer may do this."""
    try:
        rating = int(rating)
    except (TypeError, ValueError):
        raise ValidationError("rating must be a number between 1 and 5")
    if not 1 <= rating <= 5:
        raise ValidationError("rating must be a number between 1 and 5")

    try:
        trip = Trip.objects.select_for_update().get(id=trip_id)
    except (Trip.DoesNotExist, ValueError):
        raise NotFound("Trip not found")
    if trip.customer_id != customer.id:
        raise PermissionDenied("Only the customer can rate this trip")
    if not trip.is_terminal:
        raise StateConflict("Only finished trips can be rated")

    trip.rating = rating
    trip.review = review or ""
    trip.save(update_fields=["rating", "review"])

    return TripResult(success=True, trip=trip, message="Thanks for your feedback")
