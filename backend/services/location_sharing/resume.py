"""Auto-resume flag: remembers that a user was sharing when their connection dropped."""

from typing import Optional, Dict, Any

from django.core.cache import cache


def _key(user_id) -> str:
    return f"location_sharing:{user_id}"


def set_resume_state(user_id, trip_id=None, vehicle_id=None) -> None:
    cache.set(_key(user_id), {"trip_id": trip_id, "vehicle_id": vehicle_id}, timeout=None)


def get_resume_state(user_id) -> Optional[Dict[str, Any]]:
    return cache.get(_key(user_id))


def clear_resume_state(user_id) -> None:
    cache.delete(_key(user_id))
