"""
Location snapshot schema.

Every location payload read from storage or received from a device goes
through ``normalize_location`` before any other code looks at it. This is
the only module that knows about the legacy field names (``latitude``,
``longitude``, ``isSharing`` ...) written by older clients.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone as dt_timezone
from typing import Any, Dict, Optional

from django.utils import timezone
from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 2

# Field aliases, current name first
_ALIASES = {
    "lat": ("lat", "latitude"),
    "lng": ("lng", "longitude", "lon"),
    "accuracy": ("accuracy",),
    "address": ("address",),
    "timestamp": ("timestamp",),
    "is_sharing": ("is_sharing", "isSharing"),
    "vehicle_id": ("vehicle_id", "vehicleId"),
}


@dataclass
class LocationSnapshot:
    lat: Optional[float] = None
    lng: Optional[float] = None
    accuracy: Optional[float] = None
    address: str = ""
    timestamp: Optional[datetime] = None
    is_sharing: bool = False
    vehicle_id: Optional[str] = None
    schema_version: int = SCHEMA_VERSION

    @property
    def is_live(self) -> bool:
        """Only a sharing snapshot with coordinates counts as a current location."""
        return self.is_sharing and self.lat is not None

    def to_document(self) -> Dict[str, Any]:
        doc = asdict(self)
        doc["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return doc


def _pick(raw: Dict[str, Any], field: str):
    for key in _ALIASES[field]:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _to_float(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.debug("Dropping non-numeric location value %r", value)
        return None


def _to_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        # Epoch milliseconds from browser clients
        return datetime.fromtimestamp(value / 1000.0, tz=dt_timezone.utc)
    parsed = parse_datetime(str(value))
    if parsed is not None and timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def normalize_location(raw: Optional[Dict[str, Any]]) -> Optional[LocationSnapshot]:
    """Turn any stored or client-sent location dict into a LocationSnapshot."""
    if not raw:
        return None

    address = _pick(raw, "address")
    vehicle_id = _pick(raw, "vehicle_id")
    return LocationSnapshot(
        lat=_to_float(_pick(raw, "lat")),
        lng=_to_float(_pick(raw, "lng")),
        accuracy=_to_float(_pick(raw, "accuracy")),
        address=str(address) if address is not None else "",
        timestamp=_to_datetime(_pick(raw, "timestamp")),
        is_sharing=bool(_pick(raw, "is_sharing")),
        vehicle_id=str(vehicle_id) if vehicle_id is not None else None,
    )


def snapshot_from_model(location) -> Optional[LocationSnapshot]:
    """Build a snapshot from a ``UserLocation`` row (or None)."""
    if location is None:
        return None
    return LocationSnapshot(
        lat=location.lat,
        lng=location.lng,
        accuracy=location.accuracy,
        address=location.address or "",
        timestamp=location.timestamp,
        is_sharing=location.is_sharing,
        vehicle_id=location.vehicle_id,
    )


def live_or_none(snapshot: Optional[LocationSnapshot]) -> Optional[LocationSnapshot]:
    """Absent and stale are the same thing to consumers."""
    if snapshot is not None and snapshot.is_live:
        return snapshot
    return None
