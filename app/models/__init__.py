"""Database models."""

from app.models.user import User, UserRole, UserStatus
from app.models.account import LinkedAccount

__all__ = ["User", "UserRole", "UserStatus", "LinkedAccount"]
