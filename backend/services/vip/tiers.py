"""VIP tier table."""

from dataclasses import dataclass, asdict
from typing import Optional


@dataclass(frozen=True)
class VipTier:
    level: int
    name: str
    color: str
    stars: int
    referrals_required: int
    price: int

    def as_dict(self):
        return asdict(self)


VIP_TIERS = (
    VipTier(1, "Green VIP", "green", 1, 15, 5000),
    VipTier(2, "Yellow VIP", "yellow", 2, 20, 7500),
    VipTier(3, "Purple VIP", "purple", 3, 25, 11000),
    VipTier(4, "Gold VIP", "gold", 4, 30, 15000),
    VipTier(5, "Black VIP", "black", 5, 35, 20000),
)

_BY_LEVEL = {tier.level: tier for tier in VIP_TIERS}


def get_tier(level) -> Optional[VipTier]:
    return _BY_LEVEL.get(level)


def tier_for_referrals(referral_count: int) -> Optional[VipTier]:
    """Highest tier unlocked by referrals alone."""
    unlocked = None
    for tier in VIP_TIERS:
        if referral_count >= tier.referrals_required:
            unlocked = tier
    return unlocked
