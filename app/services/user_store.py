"""Persistence access for users and linked accounts."""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.account import LinkedAccount
from app.models.user import User, UserRole, UserStatus
from app.schemas.auth import ProviderTokens, normalize_email
from app.services.exceptions import StorageError

logger = logging.getLogger(__name__)


class UserStore:
    """
    Key-based queries over the ``users`` and ``accounts`` tables.

    Writes are staged on the session; callers group them with
    :meth:`transaction` so that related rows commit or roll back together.
    """

    def __init__(self, db: Session):
        """
        Initialize the store.

        Args:
            db: SQLAlchemy database session
        """
        self.db = db

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Commit staged writes on exit, roll back on failure.

        Raises:
            StorageError: If the database rejects the writes
        """
        try:
            yield
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database transaction failed: {e}")
            raise StorageError() from e

    def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email, normalized before the lookup."""
        try:
            return self.db.query(User).filter(User.email == normalize_email(email)).first()
        except SQLAlchemyError as e:
            logger.error(f"User lookup by email failed: {e}")
            raise StorageError() from e

    def get_by_id(self, user_id: UUID) -> Optional[User]:
        try:
            return self.db.query(User).filter(User.id == user_id).first()
        except SQLAlchemyError as e:
            logger.error(f"User lookup by id failed: {e}")
            raise StorageError() from e

    def email_exists(self, email: str) -> bool:
        return self.get_by_email(email) is not None

    def referral_code_exists(self, code: str) -> bool:
        try:
            return (
                self.db.query(User.id).filter(User.referral_code == code).first() is not None
            )
        except SQLAlchemyError as e:
            logger.error(f"Referral code lookup failed: {e}")
            raise StorageError() from e

    def get_linked_account(self, provider: str, provider_account_id: str) -> Optional[LinkedAccount]:
        try:
            return (
                self.db.query(LinkedAccount)
                .filter(
                    LinkedAccount.provider == provider,
                    LinkedAccount.provider_account_id == provider_account_id,
                )
                .first()
            )
        except SQLAlchemyError as e:
            logger.error(f"Linked account lookup failed: {e}")
            raise StorageError() from e

    def list_providers(self, user_id: UUID) -> list[str]:
        """Names of the providers linked to a user."""
        try:
            rows = (
                self.db.query(LinkedAccount.provider)
                .filter(LinkedAccount.user_id == user_id)
                .order_by(LinkedAccount.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Linked account listing failed: {e}")
            raise StorageError() from e
        return [row.provider for row in rows]

    def add_user(
        self,
        *,
        email: str,
        name: str,
        referral_code: str,
        country_code: str,
        country: Optional[str],
        status: UserStatus,
        role: UserRole = UserRole.USER,
        image: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> User:
        """Stage a new user and flush it so its id is available."""
        user = User(
            email=normalize_email(email),
            name=name,
            image=image,
            referral_code=referral_code,
            country_code=country_code,
            country=country,
            status=status,
            role=role,
            password_hash=password_hash,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def add_linked_account(
        self,
        *,
        user_id: UUID,
        provider: str,
        provider_account_id: str,
        tokens: ProviderTokens,
        account_type: str = "oauth",
    ) -> LinkedAccount:
        """Stage a linked account holding the provider tokens as received."""
        account = LinkedAccount(
            user_id=user_id,
            type=account_type,
            provider=provider,
            provider_account_id=provider_account_id,
            **tokens.model_dump(),
        )
        self.db.add(account)
        self.db.flush()
        return account

    def refresh(self, instance) -> None:
        self.db.refresh(instance)
