"""Referral code issuing and lookup."""

import logging
import secrets
from typing import Optional

logger = logging.getLogger(__name__)

CODE_LENGTH = 8
# No 0/O or 1/I/L so codes survive being read aloud or retyped
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
MAX_ISSUE_ATTEMPTS = 10


def _random_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def issue_referral_code() -> str:
    """Return a random referral code not yet held by any user."""
    from accounts.models import User

    for _ in range(MAX_ISSUE_ATTEMPTS):
        code = _random_code()
        if not User.objects.filter(referral_code=code).exists():
            return code
        logger.debug("Referral code collision on %s, retrying", code)
    raise RuntimeError("Could not issue a unique referral code")


def resolve_referrer(code) -> Optional[int]:
    """
    Map the code from a signup link to the referrer's user id.

    Malformed or unknown codes resolve to None.
    """
    from accounts.models import User

    if not isinstance(code, str):
        return None
    code = code.strip().upper()
    if len(code) != CODE_LENGTH:
        return None
    return User.objects.filter(referral_code=code).values_list("id", flat=True).first()


def referral_link(user) -> str:
    return f"/signup?ref={user.referral_code}"
