"""
VIP purchase ledger.

A purchase runs for VIP_TERM. Buying again while a subscription is still
running extends the current expiry instead of restarting the term, and the
original purchase date is kept.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Dict, Any

from django.db import transaction
from django.utils import timezone

from accounts.models import User, VipPurchase
from common.utils import with_retry
from services.exceptions import MissingFields, InvalidVipLevel, NotFound, ValidationError
from services.notifications import send_notification
from .tiers import VIP_TIERS, get_tier, tier_for_referrals

logger = logging.getLogger(__name__)

VIP_TERM = timedelta(days=365)


@dataclass
class VipReceipt:
    level: int
    name: str
    price: int
    payment_id: str
    purchase_date: datetime
    expiry_date: datetime
    previous_level: int
    created: bool = True

    def as_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "name": self.name,
            "price": self.price,
            "payment_id": self.payment_id,
            "purchase_date": self.purchase_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat(),
            "previous_level": self.previous_level,
        }


def _receipt(purchase: VipPurchase, created: bool) -> VipReceipt:
    return VipReceipt(
        level=purchase.level,
        name=get_tier(purchase.level).name,
        price=purchase.price,
        payment_id=purchase.payment_id,
        purchase_date=purchase.purchase_date,
        expiry_date=purchase.expiry_date,
        previous_level=purchase.previous_level,
        created=created,
    )


@with_retry
@transaction.atomic
def purchase_vip(user_id, level, payment_reference, now: Optional[datetime] = None) -> VipReceipt:
    """
    Record a confirmed VIP payment for ``user_id``.

    Only called once the payment webhook has verified the payment. The same
    ``payment_reference`` delivered twice returns the first receipt.

    Raises:
        MissingFields: user_id, level or payment_reference is empty
        InvalidVipLevel: level is not in the tier table
        NotFound: user does not exist
        ValidationError: payment reference already used by another user
    """
    if not user_id or not level or not payment_reference:
        raise MissingFields("Missing required fields")

    tier = get_tier(level)
    if tier is None:
        raise InvalidVipLevel("Invalid VIP level")

    try:
        user = User.objects.select_for_update().get(id=user_id)
    except (User.DoesNotExist, ValueError):
        raise NotFound("User not found")

    existing = VipPurchase.objects.filter(payment_id=payment_reference).first()
    if existing is not None:
        if existing.user_id != user.id:
            raise ValidationError("Payment reference already used")
        logger.info("Payment %s already applied to user %s", payment_reference, user.id)
        return _receipt(existing, created=False)

    now = now or timezone.now()
    previous_level = user.vip_level

    if user.vip_expiry_date and user.vip_expiry_date > now:
        expiry_date = user.vip_expiry_date + VIP_TERM
        purchase_date = user.vip_purchase_date or now
    else:
        purchase_date = now
        expiry_date = now + VIP_TERM

    user.purchased_vip_level = tier.level
    user.vip_level = max(tier.level, user.vip_level)
    user.vip_purchase_date = purchase_date
    user.vip_expiry_date = expiry_date
    user.save(update_fields=[
        "purchased_vip_level", "vip_level", "vip_purchase_date", "vip_expiry_date",
    ])

    purchase = VipPurchase.objects.create(
        user=user,
        level=tier.level,
        payment_id=payment_reference,
        price=tier.price,
        purchase_date=purchase_date,
        expiry_date=expiry_date,
        previous_level=previous_level,
    )

    logger.info(
        "User %s purchased %s (payment %s), expires %s",
        user.id, tier.name, payment_reference, expiry_date.isoformat(),
    )

    user_pk = user.id
    transaction.on_commit(lambda: send_notification(
        user_pk,
        key=f"vip_purchase_{payment_reference}",
        title=f"Welcome to {tier.name}",
        message=f"Successfully upgraded to {tier.name}. Valid until {expiry_date:%d %b %Y}.",
        type="success",
        action_url="/profile",
    ))

    return _receipt(purchase, created=True)


def vip_summary(user, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Effective VIP status: an expired purchase no longer counts, referral tiers always do."""
    now = now or timezone.now()

    purchase_active = bool(user.vip_expiry_date and user.vip_expiry_date > now)
    purchased_level = user.purchased_vip_level if purchase_active else 0
    referral_tier = tier_for_referrals(user.referral_count)
    referral_level = referral_tier.level if referral_tier else 0
    effective_level = max(purchased_level, referral_level)

    current = get_tier(effective_level)
    next_tier = get_tier(effective_level + 1)

    return {
        "level": effective_level,
        "name": current.name if current else None,
        "color": current.color if current else None,
        "stars": current.stars if current else 0,
        "purchased_level": purchased_level,
        "referral_level": referral_level,
        "purchase_active": purchase_active,
        "purchase_date": user.vip_purchase_date.isoformat() if purchase_active else None,
        "expiry_date": user.vip_expiry_date.isoformat() if purchase_active else None,
        "next_tier": next_tier.as_dict() if next_tier else None,
        "referrals_to_next_tier": (
            max(0, next_tier.referrals_required - user.referral_count) if next_tier else 0
        ),
        "max_level": VIP_TIERS[-1].level,
    }
