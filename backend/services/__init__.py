"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer. Every operation takes the
acting user as an explicit argument.

Modules:
    - location_sharing: Publishing a user's live position
    - trip_tracking: Live view of a trip for its participants
    - trip_management: Trip lifecycle operations
    - tracking_links: Public read-only tracking links
    - chat: Pre-booking chat threads
    - bookings: Booking requests and driver offers
    - referrals: Referral codes and points ledger
    - vip: VIP tiers and purchases
    - notifications: In-app notifications
    - account_deletion: Removing an account and its data
"""

# Expose commonly used functions at package level
from .location_sharing import LocationPublisher, ClientReportedGeolocation, reverse_geocode
from .trip_tracking import TripTracker, build_tracker_for_trip
from .trip_management import (
    create_trip,
    complete_trip,
    cancel_trip,
    rate_trip,
)
from .chat import (
    open_or_create_thread,
    send_message,
    mark_read,
    delete_thread,
    list_threads_for,
)
from .bookings import create_request, make_offer, accept_offer, withdraw_offer
from .referrals import issue_referral_code, resolve_referrer, award_referral
from .vip import purchase_vip, vip_summary
from .notifications import send_notification
from .exceptions import (
    ServiceError,
    PermissionDenied,
    NotFound,
    ValidationError,
    TransientNetworkError,
    StateConflict,
    MissingContactInfo,
    LocationError,
)

__all__ = [
    # Location
    "LocationPublisher",
    "ClientReportedGeolocation",
    "reverse_geocode",
    "TripTracker",
    "build_tracker_for_trip",
    # Trips
    "create_trip",
    "complete_trip",
    "cancel_trip",
    "rate_trip",
    # Chat
    "open_or_create_thread",
    "send_message",
    "mark_read",
    "delete_thread",
    "list_threads_for",
    # Bookings
    "create_request",
    "make_offer",
    "accept_offer",
    "withdraw_offer",
    # Referrals & VIP
    "issue_referral_code",
    "resolve_referrer",
    "award_referral",
    "purchase_vip",
    "vip_summary",
    "send_notification",
    # Exceptions
    "ServiceError",
    "PermissionDenied",
    "NotFound",
    "ValidationError",
    "TransientNetworkError",
    "StateConflict",
    "MissingContactInfo",
    "LocationError",
]
