"""Service layer for authentication and session logic."""

from app.services.auth_service import AuthService
from app.services.session_service import SessionService
from app.services.user_store import UserStore

__all__ = ["AuthService", "SessionService", "UserStore"]
