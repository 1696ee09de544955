"""
Public tracking links: /track/<user_id>/<token>.

Every reason a link cannot be used (unknown token, token of another user,
revoked, expired, user gone) fails the same way, so a caller learns
nothing about which tokens or users exist.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from django.utils import timezone

from accounts.models import User
from services.exceptions import PermissionDenied, TrackingLinkInvalid
from trips.models import TrackingToken, UserLocation
from trips.schema import live_or_none, snapshot_from_model

logger = logging.getLogger(__name__)


def issue_tracking_token(subject, contact_label: str = "") -> TrackingToken:
    if subject is None or not subject.is_authenticated:
        raise PermissionDenied("Sign in to share a tracking link")
    token = TrackingToken.objects.create(user=subject, contact_label=contact_label or "")
    logger.info("Tracking link issued for user %s (expires %s)", subject.id, token.expires_at.isoformat())
    return token


def revoke_tracking_token(subject, token: str) -> bool:
    return TrackingToken.objects.filter(user=subject, token=token, is_valid=True).update(is_valid=False) > 0


def resolve_tracking_token(user_id, token: str, now: Optional[datetime] = None) -> User:
    """Return the tracked user, or raise TrackingLinkInvalid."""
    invalid = TrackingLinkInvalid(TrackingLinkInvalid.default_message)

    record = (
        TrackingToken.objects
        .select_related("user")
        .filter(token=token)
        .first()
    )
    if record is None or str(record.user_id) != str(user_id):
        raise invalid
    if not record.is_usable(now or timezone.now()):
        raise invalid
    if not record.user.is_active:
        raise invalid
    return record.user


def public_location_view(user) -> Dict[str, Any]:
    """Read-only view of a tracked user; coordinates only while they are sharing."""
    location = UserLocation.objects.filter(user=user).first()
    snapshot = live_or_none(snapshot_from_model(location))
    return {
        "user_id": user.id,
        "name": user.display_name,
        "is_driver": user.is_driver,
        "is_sharing": snapshot is not None,
        "location": snapshot.to_document() if snapshot else None,
        "last_updated": location.updated_at.isoformat() if location else None,
    }
