"""User model for registration, sign-in and access control."""

import uuid
from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, Text, Enum, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class UserRole(str, PyEnum):
    """Roles recognised by the access-control layer."""

    USER = "user"
    ADMIN = "admin"


class UserStatus(str, PyEnum):
    """Account status. ``banned`` blocks every sign-in path."""

    INACTIVE = "inactive"
    ACTIVE = "active"
    BANNED = "banned"


class User(Base):
    """
    User identity record.

    Email is stored trimmed and lowercased. Accounts created through an
    external provider have no password hash until the owner sets one up.
    """

    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    image = Column(Text, nullable=True)

    # ISO alpha-2 code and display name
    country_code = Column(String(2), nullable=False, default="KE")
    country = Column(String(100), nullable=True)

    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserRole.USER,
    )
    status = Column(
        Enum(UserStatus, name="user_status", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=UserStatus.INACTIVE,
    )

    password_hash = Column(Text, nullable=True)
    referral_code = Column(String(50), unique=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    accounts = relationship(
        "LinkedAccount",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("users_status_idx", "status"),)

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
