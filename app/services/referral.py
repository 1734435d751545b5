"""Referral code generation."""

import logging
import secrets
import string
from typing import Callable, Optional

from app.config import settings
from app.services.exceptions import StorageError

logger = logging.getLogger(__name__)

REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_ALPHABET = string.ascii_lowercase + string.digits


def generate_referral_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    """Return a random lowercase-alphanumeric code."""
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(length))


def generate_unique_referral_code(
    exists: Callable[[str], bool],
    max_attempts: Optional[int] = None,
) -> str:
    """
    Generate a referral code not yet used by any account.

    Args:
        exists: Lookup telling whether a code is already taken
        max_attempts: Number of candidates to try before giving up

    Returns:
        An unused referral code

    Raises:
        StorageError: If every candidate collided
    """
    attempts = max_attempts or settings.REFERRAL_CODE_MAX_ATTEMPTS
    for attempt in range(1, attempts + 1):
        code = generate_referral_code()
        if not exists(code):
            return code
        logger.warning(f"Referral code collision on attempt {attempt}")

    raise StorageError("Could not allocate a referral code. Please try again.")
