"""
Booking request marketplace.

A customer posts a request describing the car and trip they need; drivers
answer with priced offers. Accepting an offer fulfils the request, rejects
the competing offers and opens the pre-booking chat with the chosen driver.

A request is open while it is ``active`` and ``expires_at`` lies in the
future. Expired rows are flipped to ``expired`` by a periodic task; until
then every read treats them as closed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import User
from bookings.models import BookingRequest, Offer
from chats.models import ChatThread
from common.utils import with_retry
from services.chat import open_or_create_thread
from services.exceptions import (
    MissingFields,
    NotFound,
    PermissionDenied,
    StateConflict,
    ValidationError,
)
from services.notifications import send_notification

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    "car_type", "start_date", "end_date", "budget", "location", "destination",
    "passengers", "trip_type", "description", "negotiable", "urgent",
)


@dataclass
class OfferAcceptance:
    offer: Offer
    thread: ChatThread
    thread_created: bool
    rejected_count: int = 0


# ===================== Queries =====================

def get_request(request_id, lock: bool = False) -> BookingRequest:
    qs = BookingRequest.objects.select_for_update() if lock else BookingRequest.objects.all()
    try:
        return qs.get(id=request_id)
    except (BookingRequest.DoesNotExist, ValueError):
        raise NotFound("Booking request not found")


def open_requests(urgent_only: bool = False):
    """Requests drivers can still answer, newest first."""
    qs = BookingRequest.objects.filter(status="active", expires_at__gt=timezone.now())
    if urgent_only:
        qs = qs.filter(urgent=True)
    return qs.select_related("customer").prefetch_related("offers__driver")


def requests_for(customer):
    return BookingRequest.objects.filter(customer=customer).prefetch_related("offers__driver")


def active_request_count(customer_id) -> int:
    return BookingRequest.objects.filter(
        customer_id=customer_id, status="active", expires_at__gt=timezone.now()
    ).count()


def _check_dates(start_date, end_date):
    if start_date and end_date and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date")


def _owned_open_request(subject, request_id) -> BookingRequest:
    booking = get_request(request_id, lock=True)
    if booking.customer_id != subject.id:
        raise PermissionDenied("This is not your booking request")
    if not booking.is_open():
        raise StateConflict(f"Booking request is no longer active ({booking.status})")
    return booking


# ===================== Customer side =====================

@with_retry
@transaction.atomic
def create_request(subject, **fields) -> BookingRequest:
    """
    Post a booking request.

    Raises:
        MissingFields: car_type or location missing
        ValidationError: end date before start date
        StateConflict: the customer already has the maximum of active requests
    """
    missing = [name for name in ("car_type", "location") if not fields.get(name)]
    if missing:
        raise MissingFields(f"Missing required fields: {', '.join(missing)}")
    _check_dates(fields.get("start_date"), fields.get("end_date"))

    # Serializes concurrent posts by the same customer around the limit check
    User.objects.select_for_update().filter(id=subject.id).first()
    limit = settings.MAX_ACTIVE_BOOKING_REQUESTS
    if active_request_count(subject.id) >= limit:
        raise StateConflict(
            f"You have reached the maximum of {limit} active requests. "
            "Delete one of your existing requests before creating a new one."
        )

    data = {name: fields[name] for name in EDITABLE_FIELDS if name in fields}
    if not data.get("destination"):
        data["destination"] = data["location"]

    booking = BookingRequest.objects.create(customer=subject, **data)
    logger.info("Booking request %s posted by customer %s (urgent=%s)", booking.id, subject.id, booking.urgent)
    return booking


@with_retry
@transaction.atomic
def update_request(subject, request_id, **fields) -> BookingRequest:
    booking = _owned_open_request(subject, request_id)

    changed = []
    for name in EDITABLE_FIELDS:
        if name in fields:
            setattr(booking, name, fields[name])
            changed.append(name)
    if not booking.car_type or not booking.location:
        raise MissingFields("car_type and location cannot be empty")
    _check_dates(booking.start_date, booking.end_date)

    if changed:
        booking.save(update_fields=changed + ["updated_at"])
    return booking


@transaction.atomic
def delete_request(subject, request_id) -> None:
    booking = get_request(request_id, lock=True)
    if booking.customer_id != subject.id:
        raise PermissionDenied("This is not your booking request")
    booking.delete()
    logger.info("Booking request %s deleted by customer %s", request_id, subject.id)


@with_retry
@transaction.atomic
def accept_offer(subject, offer_id) -> OfferAcceptance:
    """
    Accept one driver's offer.

    The request becomes ``fulfilled``, every other pending offer is
    rejected, and the chat between customer and driver about this request
    is opened (or reopened).
    """
    try:
        offer = Offer.objects.select_related("driver").get(id=offer_id)
    except (Offer.DoesNotExist, ValueError):
        raise NotFound("Offer not found")

    booking = _owned_open_request(subject, offer.request_id)
    offer = Offer.objects.select_for_update().select_related("driver").get(id=offer.id)
    if offer.status != "pending":
        raise StateConflict(f"Offer is already {offer.status}")

    offer.status = "accepted"
    offer.save(update_fields=["status"])
    rejected = (
        Offer.objects
        .filter(request=booking, status="pending")
        .exclude(id=offer.id)
        .update(status="rejected")
    )
    booking.status = "fulfilled"
    booking.save(update_fields=["status", "updated_at"])

    thread, created = open_or_create_thread(subject, subject.id, offer.driver_id, booking.chat_car_info)

    driver_id = offer.driver_id
    customer_name = subject.display_name
    transaction.on_commit(lambda: send_notification(
        driver_id,
        key=f"offer_accepted_{offer.id}",
        title="Offer accepted",
        message=f"{customer_name} accepted your offer for {booking.car_type}. Say hello in chat!",
        type="success",
        action_url=f"/chat?thread={thread.id}",
    ))

    logger.info(
        "Offer %s accepted on request %s; %d competing offers rejected",
        offer.id, booking.id, rejected,
    )
    return OfferAcceptance(offer=offer, thread=thread, thread_created=created, rejected_count=rejected)


# ===================== Driver side =====================

def record_view(subject, request_id) -> None:
    """Count a driver looking at someone else's request."""
    if not subject.is_driver:
        return
    BookingRequest.objects.filter(id=request_id).exclude(customer_id=subject.id).update(views=F("views") + 1)


@with_retry
@transaction.atomic
def make_offer(subject, request_id, car_make, price, has_ac: bool = True, message: str = "") -> Offer:
    """
    Raises:
        PermissionDenied: subject is not a driver, or owns the request
        MissingFields: price or car make missing
        StateConflict: request closed, or this driver already has an offer on it
    """
    if not subject.is_driver:
        raise PermissionDenied("Only drivers can make offers")
    if price in (None, "") or not (car_make or "").strip():
        raise MissingFields("Please enter your price offer and car make/model")

    booking = get_request(request_id, lock=True)
    if booking.customer_id == subject.id:
        raise PermissionDenied("You cannot make offers on your own request")
    if not booking.is_open():
        raise StateConflict(f"Booking request is no longer active ({booking.status})")
    if Offer.objects.filter(request=booking, driver=subject).exists():
        raise StateConflict("You already made an offer on this request. Withdraw it to make a new one.")

    offer = Offer.objects.create(
        request=booking,
        driver=subject,
        car_make=car_make.strip(),
        price=price,
        has_ac=has_ac,
        message=message or "",
    )
    BookingRequest.objects.filter(id=booking.id).update(views=F("views") + 1)

    customer_id = booking.customer_id
    driver_name = subject.display_name
    transaction.on_commit(lambda: send_notification(
        customer_id,
        key=f"offer_{offer.id}",
        title="New offer",
        message=f"{driver_name} offered {offer.price} for your {booking.car_type} request.",
        type="money",
        action_url=f"/requests/{booking.id}",
    ))

    logger.info("Driver %s offered %s on request %s", subject.id, price, booking.id)
    return offer


@transaction.atomic
def withdraw_offer(subject, offer_id) -> None:
    try:
        offer = Offer.objects.select_for_update().get(id=offer_id)
    except (Offer.DoesNotExist, ValueError):
        raise NotFound("Offer not found")
    if offer.driver_id != subject.id:
        raise PermissionDenied("You can only withdraw your own offers")
    if offer.status != "pending":
        raise StateConflict(f"Offer is already {offer.status}")
    offer.delete()
    logger.info("Driver %s withdrew offer %s", subject.id, offer_id)


# ===================== Expiry =====================

def expire_stale_requests(now: Optional[datetime] = None) -> int:
    """Flip active requests past ``expires_at`` to ``expired``."""
    now = now or timezone.now()
    return BookingRequest.objects.filter(status="active", expires_at__lte=now).update(status="expired")
