"""Linked external-provider account model."""

import uuid

from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class LinkedAccount(Base):
    """
    One external identity (e.g. a GitHub account) bound to a local user.

    Provider tokens are stored exactly as the provider returned them.
    A given (provider, provider_account_id) pair can belong to one user only.
    """

    __tablename__ = "accounts"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = Column(String(255), nullable=False, default="oauth")
    provider = Column(String(255), nullable=False, index=True)
    provider_account_id = Column(String(255), nullable=False)

    refresh_token = Column(Text, nullable=True)
    access_token = Column(Text, nullable=True)
    expires_at = Column(Integer, nullable=True)
    token_type = Column(String(255), nullable=True)
    scope = Column(String(255), nullable=True)
    id_token = Column(Text, nullable=True)
    session_state = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="accounts")

    __table_args__ = (
        UniqueConstraint("provider", "provider_account_id", name="accounts_provider_account_unique"),
    )

    def __repr__(self) -> str:
        return f"<LinkedAccount(provider={self.provider}, provider_account_id={self.provider_account_id})>"
