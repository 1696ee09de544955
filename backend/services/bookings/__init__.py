"""
Bookings service - the request and offer marketplace.

This module handles:
    - Customers posting, editing and deleting booking requests
    - Drivers making and withdrawing offers
    - Accepting an offer, which opens the pre-booking chat
    - Expiring requests nobody answered in time
"""

from .marketplace import (
    OfferAcceptance,
    get_request,
    open_requests,
    requests_for,
    active_request_count,
    create_request,
    update_request,
    delete_request,
    accept_offer,
    record_view,
    make_offer,
    withdraw_offer,
    expire_stale_requests,
)

__all__ = [
    "OfferAcceptance",
    "get_request",
    "open_requests",
    "requests_for",
    "active_request_count",
    "create_request",
    "update_request",
    "delete_request",
    "accept_offer",
    "record_view",
    "make_offer",
    "withdraw_offer",
    "expire_stale_requests",
]
