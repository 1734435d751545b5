"""Pydantic schemas for user records."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from app.models.user import UserRole, UserStatus


class UserResponse(BaseModel):
    """Schema for user response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(..., description="Unique user identifier")
    email: str = Field(..., description="User email address")
    name: str = Field(..., description="User's full name")
    image: Optional[str] = Field(default=None, description="Profile image URL")
    country_code: str = Field(..., description="ISO alpha-2 country code")
    country: Optional[str] = Field(default=None, description="Country display name")
    role: UserRole = Field(..., description="Access role")
    status: UserStatus = Field(..., description="Account status")
    referral_code: str = Field(..., description="Referral code")
    created_at: datetime = Field(..., description="Account creation timestamp")
