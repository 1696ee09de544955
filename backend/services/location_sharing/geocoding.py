"""Reverse geocoding through Nominatim. Never raises."""

import logging

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

PLACEHOLDER_ADDRESS = "Location updated"
NO_ADDRESS = "On the way"


def reverse_geocode(lat: float, lng: float) -> str:
    """Human-readable address for a point, or a placeholder on any failure."""
    try:
        response = requests.get(
            settings.NOMINATIM_URL,
            params={"format": "json", "lat": lat, "lon": lng},
            headers={"User-Agent": settings.GEOCODER_USER_AGENT},
            timeout=settings.REVERSE_GEOCODE_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning("Reverse geocoding (%s, %s) failed: %s", lat, lng, e)
        return PLACEHOLDER_ADDRESS

    if not isinstance(data, dict):
        return NO_ADDRESS
    return data.get("display_name") or NO_ADDRESS
