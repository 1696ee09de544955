"""
Referral service - referral codes and the points ledger.

This module handles:
    - Issuing unique referral codes at signup
    - Resolving a code from a signup link to its owner
    - Awarding points and free rides to the referrer
"""

from .codes import issue_referral_code, resolve_referrer, referral_link
from .ledger import award_referral, free_rides_between, ReferralAward

__all__ = [
    "issue_referral_code",
    "resolve_referrer",
    "referral_link",
    "award_referral",
    "free_rides_between",
    "ReferralAward",
]
