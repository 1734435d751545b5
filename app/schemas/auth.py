"""Pydantic schemas for sign-up, sign-in and sessions."""

import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, EmailStr, ValidationInfo, field_validator

from app.models.user import UserRole, UserStatus

NAME_PATTERN = re.compile(r"[a-zA-Z '.-]+")
REFERRAL_CODE_PATTERN = re.compile(r"[a-z0-9]{6,12}")
MAX_EMAIL_LENGTH = 255


def normalize_email(email: str) -> str:
    """Trim and lowercase an email before any lookup or write."""
    return email.strip().lower()


class SignUpRequest(BaseModel):
    """Schema for credential registration."""

    name: str = Field(..., min_length=2, max_length=100, description="Full name")
    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=8, max_length=128, description="Password")
    confirm_password: str = Field(..., min_length=1, description="Password confirmation")
    referral_code: Optional[str] = Field(default=None, description="Referral code of an existing member")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email_field(cls, value):
        if isinstance(value, str):
            value = normalize_email(value)
            if len(value) > MAX_EMAIL_LENGTH:
                raise ValueError("Email is too long")
        return value

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not NAME_PATTERN.fullmatch(value):
            raise ValueError(
                "Full name can only contain letters, spaces, apostrophes, hyphens, and periods"
            )
        return value

    @field_validator("referral_code", mode="before")
    @classmethod
    def validate_referral_code(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        if not isinstance(value, str) or not REFERRAL_CODE_PATTERN.fullmatch(value):
            raise ValueError(
                "Referral code must be 6-12 characters long and contain only "
                "lowercase letters and numbers"
            )
        return value

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords do not match")
        return value


class SignInRequest(BaseModel):
    """Schema for credential sign-in."""

    email: EmailStr = Field(...)
    password: str = Field(..., min_length=1, max_length=128)
    callback_url: Optional[str] = Field(default=None, description="Post-login redirect path")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email_field(cls, value):
        if isinstance(value, str):
            value = normalize_email(value)
            if len(value) > MAX_EMAIL_LENGTH:
                raise ValueError("Email is too long")
        return value


class SetupPasswordRequest(BaseModel):
    """Schema for adding a password to an OAuth-only account."""

    password: str = Field(..., min_length=1, description="New password")


class ProviderTokens(BaseModel):
    """Tokens returned by an OAuth provider, stored verbatim."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None
    token_type: Optional[str] = None
    scope: Optional[str] = None
    id_token: Optional[str] = None
    session_state: Optional[str] = None


class ExternalProfile(BaseModel):
    """Identity asserted by an OAuth provider."""

    provider_account_id: str
    email: str
    name: Optional[str] = None
    image: Optional[str] = None


class AuthIdentity(BaseModel):
    """Normalized identity produced by every successful sign-in."""

    id: UUID
    email: str
    name: str
    image: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    country: Optional[str] = None
    referral_code: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SessionClaims(BaseModel):
    """Claims carried inside the signed session token."""

    id: str
    email: str
    name: str
    image: Optional[str] = None
    role: UserRole
    status: UserStatus
    country: str
    referral_code: str
    iat: Optional[int] = None
    exp: Optional[int] = None


class SessionUser(BaseModel):
    """User-facing view of the current session."""

    id: str
    email: str
    name: str
    image: Optional[str] = None
    role: UserRole
    status: UserStatus
    country: str
    referral_code: str
    created_at: datetime = Field(..., description="Time the session was read")
    updated_at: datetime = Field(..., description="Time the session was read")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class SessionView(BaseModel):
    """Session returned to clients."""

    user: SessionUser
    expires: datetime


class UserProjection(BaseModel):
    """Minimal projection of a newly created user."""

    id: UUID
    email: str
    name: str


class OnboardingInfo(BaseModel):
    initial_level: str = "bronze"
    referral_used: bool = False


class SignUpResult(BaseModel):
    """Successful sign-up response."""

    success: bool = True
    message: str = "Account created successfully!"
    user: UserProjection
    onboarding: OnboardingInfo


class SignInResult(BaseModel):
    """Successful credential sign-in response."""

    success: bool = True
    redirect_to: str
    access_token: str
    token_type: str = "bearer"


class FailureResult(BaseModel):
    """Tagged failure returned by the authentication endpoints."""

    success: bool = False
    error: str
    message: str
    field_errors: Optional[dict[str, str]] = None
    retry_after: Optional[int] = None


class AuthMethods(BaseModel):
    """Sign-in methods available to a user."""

    has_password: bool
    oauth_providers: list[str]
    has_github: bool


class MessageResponse(BaseModel):
    message: str


class AuthErrorInfo(BaseModel):
    """User-facing description of an authentication error code."""

    error: str
    message: str
