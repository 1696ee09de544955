"""
Location publisher.

Writes a user's live position to their UserLocation row and mirrors it
into the trip they are sharing for. Each side of a trip only ever writes
its own ``driver_location``/``customer_location`` field.
"""

import logging
from typing import Callable, Optional

from django.db import transaction
from django.utils import timezone

from common.utils import with_retry
from services.exceptions import (
    LocationError,
    MissingContactInfo,
    NotFound,
    PermissionDenied,
    StateConflict,
)
from trips.models import Trip, UserLocation
from trips.schema import LocationSnapshot, normalize_location, snapshot_from_model
from .geocoding import reverse_geocode
from .geolocation import DEFAULT_WATCH_OPTIONS, GeolocationProvider, PositionFix, WatchOptions
from .resume import clear_resume_state, set_resume_state

logger = logging.getLogger(__name__)


# ===================== Store writes =====================

def get_user_snapshot(user_id) -> Optional[LocationSnapshot]:
    return snapshot_from_model(UserLocation.objects.filter(user_id=user_id).first())


def _mirror_into_trip(trip_id, user_id, document) -> bool:
    """Write ``document`` into the caller's own side of the trip."""
    trip = Trip.objects.filter(id=trip_id).first()
    if trip is None or trip.is_terminal:
        return False
    side = trip.side_of(user_id)
    if side is None:
        logger.warning("User %s is not a participant of trip %s; not mirroring", user_id, trip_id)
        return False

    field = f"{side}_location"
    setattr(trip, field, document)
    trip.last_location_update = timezone.now()
    trip.save(update_fields=[field, "last_location_update"])
    return True


def _clear_trip_copy(trip_id, user_id) -> None:
    """Flip the caller's mirrored location in ``trip_id`` to not sharing."""
    trip = Trip.objects.filter(id=trip_id).first()
    if trip is None:
        return
    side = trip.side_of(user_id)
    if side is None:
        return
    mirrored = normalize_location(getattr(trip, f"{side}_location"))
    if mirrored is not None and mirrored.is_sharing:
        mirrored.is_sharing = False
        _mirror_into_trip(trip_id, user_id, mirrored.to_document())


@with_retry
@transaction.atomic
def write_initial_location(user, fix: PositionFix, address: str, trip=None, vehicle_id=None) -> LocationSnapshot:
    """First write of a sharing session: full snapshot with ``is_sharing=True``."""
    previous_trip_id = (
        UserLocation.objects.select_for_update()
        .filter(user=user)
        .values_list("trip_id", flat=True)
        .first()
    )
    new_trip_id = trip.id if trip is not None else None
    if previous_trip_id and previous_trip_id != new_trip_id:
        # The row is about to forget the old trip; its copy must not stay live
        _clear_trip_copy(previous_trip_id, user.id)

    location, _ = UserLocation.objects.update_or_create(
        user=user,
        defaults={
            "lat": fix.lat,
            "lng": fix.lng,
            "accuracy": fix.accuracy,
            "address": address,
            "timestamp": fix.timestamp,
            "is_sharing": True,
            "vehicle_id": vehicle_id,
            "trip": trip,
            "shared_at": timezone.now(),
        },
    )
    snapshot = snapshot_from_model(location)
    if trip is not None:
        _mirror_into_trip(trip.id, user.id, snapshot.to_document())
    return snapshot


@with_retry
@transaction.atomic
def apply_position_update(user_id, fix: PositionFix, address: str) -> Optional[LocationSnapshot]:
    """
    Partial update of the position fields only.

    Returns None when the user is not sharing; a late fix arriving after
    stop must not turn sharing back on.
    """
    location = UserLocation.objects.select_for_update().filter(user_id=user_id).first()
    if location is None or not location.is_sharing:
        logger.debug("Ignoring position for user %s: not sharing", user_id)
        return None

    location.lat = fix.lat
    location.lng = fix.lng
    location.accuracy = fix.accuracy
    location.address = address
    location.timestamp = fix.timestamp
    location.save(update_fields=["lat", "lng", "accuracy", "address", "timestamp", "updated_at"])

    snapshot = snapshot_from_model(location)
    if location.trip_id:
        _mirror_into_trip(location.trip_id, user_id, snapshot.to_document())
    return snapshot


@with_retry
@transaction.atomic
def mark_sharing_stopped(user_id, trip_id=None) -> None:
    """Clear ``is_sharing`` on the user location and the mirrored trip field. Idempotent."""
    trip_ids = {trip_id} if trip_id else set()

    location = UserLocation.objects.select_for_update().filter(user_id=user_id).first()
    if location is not None:
        if location.trip_id:
            trip_ids.add(location.trip_id)
        if location.is_sharing or location.trip_id:
            location.is_sharing = False
            location.trip = None
            location.save(update_fields=["is_sharing", "trip", "updated_at"])

    for tid in trip_ids:
        _clear_trip_copy(tid, user_id)

    clear_resume_state(user_id)


# ===================== Publisher =====================

class LocationPublisher:
    """
    One sharing session for one device connection.

    ``start_sharing`` takes a one-shot fix, writes it, and keeps a position
    watch open until ``stop_sharing`` or an unrecoverable geolocation error.
    """

    def __init__(
        self,
        geolocation: GeolocationProvider,
        geocoder: Callable[[float, float], str] = None,
        options: WatchOptions = DEFAULT_WATCH_OPTIONS,
        on_error: Callable[[LocationError], None] = None,
    ):
        self.geolocation = geolocation
        self.geocoder = geocoder or reverse_geocode
        self.options = options
        self.on_error = on_error
        self._watch_handle = None
        self._subject_id = None
        self._trip_id = None

    @property
    def is_sharing(self) -> bool:
        return self._watch_handle is not None

    @property
    def trip_id(self):
        return self._trip_id

    @staticmethod
    def _check_subject(subject, subject_id):
        if subject is None or not subject.is_authenticated or subject.id != subject_id:
            raise PermissionDenied("You can only share your own location")

    def _clear_watch(self):
        if self._watch_handle is not None:
            self.geolocation.clear_watch(self._watch_handle)
            self._watch_handle = None

    def start_sharing(self, subject, subject_id, trip_id=None, vehicle_id=None) -> LocationSnapshot:
        """
        Start publishing ``subject``'s location.

        Raises:
            PermissionDenied: subject is not subject_id, or not part of the trip
            MissingContactInfo: driver without a phone number on file
            NotFound: trip does not exist
            StateConflict: trip already ended
            LocationError: the device could not produce a position
        """
        self._check_subject(subject, subject_id)
        if subject.is_driver and not subject.phone_number:
            raise MissingContactInfo("Add a contact phone number before sharing your location")

        trip = None
        if trip_id is not None:
            trip = Trip.objects.filter(id=trip_id).first()
            if trip is None:
                raise NotFound("Trip not found")
            if trip.side_of(subject.id) is None:
                raise PermissionDenied("You are not part of this trip")
            if trip.is_terminal:
                raise StateConflict(f"Trip is already {trip.status}")

        fix = self.geolocation.get_current_position(self.options)
        address = self.geocoder(fix.lat, fix.lng)

        # A repeated start replaces the running watch instead of adding a second one
        self._clear_watch()
        snapshot = write_initial_location(subject, fix, address, trip=trip, vehicle_id=vehicle_id)
        set_resume_state(subject.id, trip_id=trip_id, vehicle_id=vehicle_id)

        self._subject_id = subject.id
        self._trip_id = trip_id
        self._watch_handle = self.geolocation.watch_position(
            self._on_position, self._on_error, self.options
        )
        logger.info("User %s started sharing location (trip=%s)", subject.id, trip_id)
        return snapshot

    def detach(self) -> None:
        """Drop the watch without touching the store; the resume flag stays set."""
        self._clear_watch()
        self._subject_id = None
        self._trip_id = None

    def stop_sharing(self, subject, subject_id, trip_id=None) -> None:
        self._check_subject(subject, subject_id)
        self._clear_watch()
        mark_sharing_stopped(subject_id, trip_id or self._trip_id)
        self._subject_id = None
        self._trip_id = None
        logger.info("User %s stopped sharing location", subject_id)

    def _on_position(self, fix: PositionFix) -> None:
        if self._subject_id is None:
            return
        address = self.geocoder(fix.lat, fix.lng)
        apply_position_update(self._subject_id, fix, address)

    def _on_error(self, error: LocationError) -> None:
        # Geolocation errors are never retried; sharing ends here
        user_id, trip_id = self._subject_id, self._trip_id
        self._clear_watch()
        self._subject_id = None
        self._trip_id = None
        if user_id is not None:
            mark_sharing_stopped(user_id, trip_id)
            logger.warning("Location sharing for user %s stopped: %s", user_id, error.code)
        if self.on_error is not None:
            self.on_error(error)
