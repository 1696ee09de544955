"""
Referral points ledger.

Every successful referral appends one ReferralEntry and credits the
referrer with POINTS_PER_REFERRAL points. Each time the running total
crosses a multiple of POINTS_REQUIRED_PER_FREE_RIDE, a free ride is
granted.
"""

import logging
from dataclasses import dataclass

from django.conf import settings
from django.db import transaction

from accounts.models import User, ReferralEntry
from common.utils import with_retry
from services.exceptions import NotFound, ValidationError
from services.notifications import send_notification
from services.vip.tiers import tier_for_referrals

logger = logging.getLogger(__name__)


@dataclass
class ReferralAward:
    """Outcome of one award_referral call."""
    referrer_id: int
    new_user_id: int
    points_awarded: int
    referral_points: int
    referral_count: int
    free_rides_awarded: int
    free_rides: int
    created: bool = True


def free_rides_between(old_points: int, new_points: int, threshold: int = None) -> int:
    """Free rides earned when the balance moves from old_points to new_points."""
    threshold = threshold or settings.POINTS_REQUIRED_PER_FREE_RIDE
    return new_points // threshold - old_points // threshold


def _award_from(referrer, new_user_id, points_awarded, free_rides_awarded, created):
    return ReferralAward(
        referrer_id=referrer.id,
        new_user_id=new_user_id,
        points_awarded=points_awarded,
        referral_points=referrer.referral_points,
        referral_count=referrer.referral_count,
        free_rides_awarded=free_rides_awarded,
        free_rides=referrer.free_rides,
        created=created,
    )


@with_retry
@transaction.atomic
def award_referral(referrer_id: int, new_user_id: int) -> ReferralAward:
    """
    Credit ``referrer_id`` for bringing in ``new_user_id``.

    Runs with the referrer row locked, so concurrent awards never lose an
    increment. A second call for the same new user returns the existing
    award without touching any balance.

    Raises:
        ValidationError: self-referral
        NotFound: either user does not exist
    """
    if referrer_id == new_user_id:
        raise ValidationError("Users cannot refer themselves")

    try:
        referrer = User.objects.select_for_update().get(id=referrer_id)
    except User.DoesNotExist:
        raise NotFound("Referrer not found")
    try:
        new_user = User.objects.select_for_update().get(id=new_user_id)
    except User.DoesNotExist:
        raise NotFound("Referred user not found")

    existing = ReferralEntry.objects.filter(referred_user=new_user).first()
    if existing is not None:
        logger.info("User %s was already referred by %s; no award", new_user_id, existing.referrer_id)
        return _award_from(referrer, new_user_id, 0, 0, created=False)

    points = settings.POINTS_PER_REFERRAL
    old_points = referrer.referral_points
    new_points = old_points + points
    earned_rides = free_rides_between(old_points, new_points)

    ReferralEntry.objects.create(
        referrer=referrer,
        referred_user=new_user,
        points=points,
        status="completed",
    )

    referrer.referral_points = new_points
    referrer.referral_count += 1
    referrer.free_rides += earned_rides
    update_fields = ["referral_points", "referral_count", "free_rides"]

    tier = tier_for_referrals(referrer.referral_count)
    if tier is not None and tier.level > referrer.vip_level:
        referrer.vip_level = tier.level
        update_fields.append("vip_level")
    referrer.save(update_fields=update_fields)

    if new_user.referred_by_id is None:
        new_user.referred_by = referrer
        new_user.save(update_fields=["referred_by"])

    logger.info(
        "Referral %s -> %s: +%d points (total %d), +%d free rides",
        referrer_id, new_user_id, points, new_points, earned_rides,
    )

    referrer_name = referrer.display_name
    new_user_name = new_user.display_name
    referral_count = referrer.referral_count

    def _notify():
        send_notification(
            referrer_id,
            key=f"referral_{new_user_id}",
            title="New referral",
            message=f"{new_user_name} joined with your link. +{points} points!",
            type="success",
            action_url="/profile",
        )
        if earned_rides:
            send_notification(
                referrer_id,
                key=f"free_ride_{new_points // settings.POINTS_REQUIRED_PER_FREE_RIDE}",
                title="Free ride earned",
                message=f"Congratulations {referrer_name}! You earned {earned_rides} free ride(s).",
                type="money",
                action_url="/profile",
            )
        if "vip_level" in update_fields:
            send_notification(
                referrer_id,
                key=f"vip_referral_{tier.level}",
                title=f"{tier.name} unlocked",
                message=f"{referral_count} referrals reached {tier.name}.",
                type="success",
                action_url="/purchase",
            )

    transaction.on_commit(_notify)

    return _award_from(referrer, new_user_id, points, earned_rides, created=True)
