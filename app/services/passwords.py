"""Password hashing and strength rules."""

import re
from typing import Optional

import bcrypt

from app.config import settings

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128

# bcrypt only reads the first 72 bytes
BCRYPT_MAX_BYTES = 72

_STRENGTH_RULES = [
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
]


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    """Hash a password using bcrypt. Input beyond 72 bytes is ignored."""
    salt = bcrypt.gensalt(rounds=rounds or settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(_password_bytes(password), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def password_strength_errors(password: str) -> list[str]:
    """
    Check a password against the strength policy used for password setup.

    Returns:
        A list of human-readable problems, empty when the password is acceptable.
    """
    if len(password) < MIN_PASSWORD_LENGTH:
        return [f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"]
    if len(password) > MAX_PASSWORD_LENGTH:
        return ["Password is too long"]
    return [message for pattern, message in _STRENGTH_RULES if not pattern.search(password)]
