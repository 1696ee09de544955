"""
Geolocation capability consumed by the location publisher.

Positions are produced by the user's device; the server never measures
anything itself. ``ClientReportedGeolocation`` turns the fixes and errors
a device pushes over its connection into the one-shot/watch interface the
publisher works against.
"""

import abc
import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from django.utils import timezone

from common.utils import is_valid_coordinate
from services.exceptions import LocationError, PositionUnavailable, ValidationError, location_error_from_code

logger = logging.getLogger(__name__)


@dataclass
class PositionFix:
    lat: float
    lng: float
    accuracy: Optional[float] = None
    timestamp: datetime = field(default_factory=timezone.now)

    @classmethod
    def from_payload(cls, payload: dict) -> "PositionFix":
        """Build a fix from a device message; raises ValidationError on bad coordinates."""
        from trips.schema import normalize_location

        snapshot = normalize_location(payload)
        if snapshot is None or not is_valid_coordinate(snapshot.lat, snapshot.lng):
            raise ValidationError("Valid lat and lng are required")
        return cls(
            lat=snapshot.lat,
            lng=snapshot.lng,
            accuracy=snapshot.accuracy,
            timestamp=snapshot.timestamp or timezone.now(),
        )


@dataclass(frozen=True)
class WatchOptions:
    enable_high_accuracy: bool = True
    timeout: float = 10.0
    maximum_age: float = 30.0


DEFAULT_WATCH_OPTIONS = WatchOptions()

PositionCallback = Callable[[PositionFix], None]
ErrorCallback = Callable[[LocationError], None]


class GeolocationProvider(abc.ABC):
    """One-shot and continuous position access."""

    @abc.abstractmethod
    def get_current_position(self, options: WatchOptions = DEFAULT_WATCH_OPTIONS) -> PositionFix:
        """Return a fix or raise a LocationError variant."""

    @abc.abstractmethod
    def watch_position(
        self,
        callback: PositionCallback,
        error_callback: ErrorCallback,
        options: WatchOptions = DEFAULT_WATCH_OPTIONS,
    ) -> int:
        """Register callbacks and return a handle for clear_watch."""

    @abc.abstractmethod
    def clear_watch(self, handle: int) -> None:
        """Stop delivering to a watch. Unknown handles are ignored."""


@dataclass
class _Watch:
    callback: PositionCallback
    error_callback: ErrorCallback
    options: WatchOptions


class ClientReportedGeolocation(GeolocationProvider):
    """Geolocation fed by ``report_position``/``report_error`` calls from a device connection."""

    def __init__(self):
        self._latest: Optional[PositionFix] = None
        self._pending_error: Optional[LocationError] = None
        self._watches: Dict[int, _Watch] = {}
        self._handles = itertools.count(1)

    @property
    def active_watches(self) -> int:
        return len(self._watches)

    def _is_fresh(self, fix: PositionFix, options: WatchOptions) -> bool:
        return timezone.now() - fix.timestamp <= timedelta(seconds=options.maximum_age)

    # ---------------------- Device side ----------------------

    def report_position(self, fix: PositionFix) -> None:
        self._latest = fix
        self._pending_error = None
        for handle, watch in list(self._watches.items()):
            if handle not in self._watches:
                continue
            if not self._is_fresh(fix, watch.options):
                logger.debug("Dropping cached fix older than %ss", watch.options.maximum_age)
                continue
            watch.callback(fix)

    def report_error(self, code: str) -> LocationError:
        error = location_error_from_code(code)
        if not self._watches:
            self._pending_error = error
        for handle, watch in list(self._watches.items()):
            if handle in self._watches:
                watch.error_callback(error)
        return error

    # ---------------------- Publisher side ----------------------

    def get_current_position(self, options: WatchOptions = DEFAULT_WATCH_OPTIONS) -> PositionFix:
        if self._pending_error is not None:
            error, self._pending_error = self._pending_error, None
            raise error
        if self._latest is None or not self._is_fresh(self._latest, options):
            raise PositionUnavailable(PositionUnavailable.user_message)
        return self._latest

    def watch_position(
        self,
        callback: PositionCallback,
        error_callback: ErrorCallback,
        options: WatchOptions = DEFAULT_WATCH_OPTIONS,
    ) -> int:
        handle = next(self._handles)
        self._watches[handle] = _Watch(callback, error_callback, options)
        return handle

    def clear_watch(self, handle: int) -> None:
        self._watches.pop(handle, None)
