"""
VIP service - tier table, purchases and status summaries.
"""

from .tiers import VipTier, VIP_TIERS, get_tier, tier_for_referrals
from .ledger import purchase_vip, vip_summary, VipReceipt, VIP_TERM

__all__ = [
    "VipTier",
    "VIP_TIERS",
    "get_tier",
    "tier_for_referrals",
    "purchase_vip",
    "vip_summary",
    "VipReceipt",
    "VIP_TERM",
]
