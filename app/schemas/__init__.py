"""Pydantic schemas for request/response validation."""

from app.schemas.auth import (
    SignUpRequest,
    SignInRequest,
    SetupPasswordRequest,
    ExternalProfile,
    ProviderTokens,
    AuthIdentity,
    SessionClaims,
    SessionUser,
    SessionView,
    SignUpResult,
    SignInResult,
    FailureResult,
    AuthMethods,
)
from app.schemas.user import UserResponse

__all__ = [
    "SignUpRequest",
    "SignInRequest",
    "SetupPasswordRequest",
    "ExternalProfile",
    "ProviderTokens",
    "AuthIdentity",
    "SessionClaims",
    "SessionUser",
    "SessionView",
    "SignUpResult",
    "SignInResult",
    "FailureResult",
    "AuthMethods",
    "UserResponse",
]
