"""Authentication service for registration and sign-in."""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import settings
from app.models.user import User, UserRole, UserStatus
from app.schemas.auth import (
    AuthIdentity,
    AuthMethods,
    ExternalProfile,
    OnboardingInfo,
    ProviderTokens,
    SignUpRequest,
    SignUpResult,
    UserProjection,
    normalize_email,
)
from app.services.exceptions import (
    EmailTakenError,
    InvalidCredentialsError,
    OAuthAccountNotLinkedError,
    OAuthCallbackError,
    OAuthOnlyUserError,
    UserNotFoundError,
    ValidationError,
)
from app.services.location import LocationResolver, DefaultLocationResolver
from app.services.passwords import hash_password, verify_password, password_strength_errors
from app.services.providers import CredentialProvider, ExternalProvider, Provider
from app.services.referral import generate_unique_referral_code
from app.services.user_store import UserStore

logger = logging.getLogger(__name__)

DEFAULT_REDIRECT = "/dashboard"
INITIAL_LEVEL = "bronze"


def resolve_redirect_target(callback_url: Optional[str], default: str = DEFAULT_REDIRECT) -> str:
    """
    Return the post-login destination.

    Only same-origin relative paths are honoured; anything else, including
    protocol-relative ``//host`` URLs and paths carrying control characters
    (which browsers strip before navigating), falls back to ``default``.
    """
    if not callback_url:
        return default
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in callback_url):
        return default
    if not callback_url.startswith("/") or callback_url.startswith("//") or "\\" in callback_url:
        return default
    return callback_url


class AuthService:
    """
    Service for credential and OAuth authentication.

    Every sign-in path ends in an :class:`AuthIdentity`; session handling is
    left to the caller.
    """

    def __init__(self, db: Session, location_resolver: Optional[LocationResolver] = None):
        """
        Initialize the auth service.

        Args:
            db: SQLAlchemy database session
            location_resolver: Country lookup for new accounts
        """
        self.store = UserStore(db)
        self.location_resolver = location_resolver or DefaultLocationResolver()

    def authenticate(
        self,
        provider: Provider,
        *,
        email: Optional[str] = None,
        password: Optional[str] = None,
        profile: Optional[ExternalProfile] = None,
        tokens: Optional[ProviderTokens] = None,
        client_ip: Optional[str] = None,
    ) -> AuthIdentity:
        """
        Single entry point dispatching on the provider variant.

        Raises:
            ValidationError: If the arguments do not fit the provider
        """
        if isinstance(provider, CredentialProvider):
            if email is None or password is None:
                raise ValidationError("Email and password are required")
            return self.authenticate_credentials(email, password)

        if isinstance(provider, ExternalProvider):
            if profile is None:
                raise OAuthCallbackError()
            return self.authenticate_oauth(provider, profile, tokens or ProviderTokens(), client_ip)

        raise ValidationError(f"Unsupported provider: {provider!r}")

    def sign_up(self, data: SignUpRequest, client_ip: Optional[str] = None) -> SignUpResult:
        """
        Register a credential account.

        Args:
            data: Validated sign-up data
            client_ip: Requester address used for the country lookup

        Returns:
            SignUpResult with the created user projection

        Raises:
            EmailTakenError: If the email is already registered
            StorageError: If the user could not be stored
        """
        email = normalize_email(data.email)
        if self.store.email_exists(email):
            raise EmailTakenError()

        referral_code = generate_unique_referral_code(self.store.referral_code_exists)
        location = self.location_resolver.resolve(client_ip)
        password_hash = hash_password(data.password)

        with self.store.transaction():
            user = self.store.add_user(
                email=email,
                name=data.name,
                referral_code=referral_code,
                country_code=location.country_code,
                country=location.country,
                status=UserStatus.INACTIVE,
                role=UserRole.USER,
                password_hash=password_hash,
            )

        logger.info(f"Created user {user.id} via sign-up")
        return SignUpResult(
            user=UserProjection(id=user.id, email=user.email, name=user.name),
            onboarding=OnboardingInfo(
                initial_level=INITIAL_LEVEL,
                referral_used=bool(data.referral_code),
            ),
        )

    def authenticate_credentials(self, email: str, password: str) -> AuthIdentity:
        """
        Authenticate with email and password.

        Returns:
            Identity of the signed-in user

        Raises:
            InvalidCredentialsError: Unknown email, banned account or wrong password
            OAuthOnlyUserError: The account has no password set
        """
        user = self.store.get_by_email(email)

        if not user:
            raise InvalidCredentialsError()

        if user.status == UserStatus.BANNED:
            logger.info(f"Refused sign-in for banned user {user.id}")
            raise InvalidCredentialsError()

        if not user.password_hash:
            raise OAuthOnlyUserError()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        logger.info(f"User {user.id} signed in with credentials")
        return self._identity(user, default_status=UserStatus.INACTIVE)

    def authenticate_oauth(
        self,
        provider: ExternalProvider,
        profile: ExternalProfile,
        tokens: ProviderTokens,
        client_ip: Optional[str] = None,
    ) -> AuthIdentity:
        """
        Sign in with an external provider identity.

        An existing user with the same email gets the identity linked;
        otherwise a new active account is created together with the link.

        Raises:
            OAuthCallbackError: If the profile has no email
            OAuthAccountNotLinkedError: If the identity may not be linked
            StorageError: If linking or creation failed
        """
        if not profile.email:
            raise OAuthCallbackError()

        email = normalize_email(profile.email)
        user = self.store.get_by_email(email)

        if user:
            return self._link_existing(user, provider, profile, tokens)
        return self._create_from_provider(email, provider, profile, tokens, client_ip)

    def _link_existing(
        self,
        user: User,
        provider: ExternalProvider,
        profile: ExternalProfile,
        tokens: ProviderTokens,
    ) -> AuthIdentity:
        linked = self.store.get_linked_account(provider.name, profile.provider_account_id)

        if linked and linked.user_id != user.id:
            logger.warning(
                f"{provider.name} account {profile.provider_account_id} belongs to another user"
            )
            raise OAuthAccountNotLinkedError()

        if linked is None and not settings.OAUTH_AUTO_LINK_BY_EMAIL:
            raise OAuthAccountNotLinkedError()

        if user.status == UserStatus.BANNED:
            logger.info(f"Refused {provider.name} sign-in for banned user {user.id}")
            raise InvalidCredentialsError()

        with self.store.transaction():
            if linked is None:
                self.store.add_linked_account(
                    user_id=user.id,
                    provider=provider.name,
                    provider_account_id=profile.provider_account_id,
                    tokens=tokens,
                )
                logger.info(f"Linked {provider.name} account to user {user.id}")

            if not user.image and profile.image:
                user.image = profile.image
                user.updated_at = datetime.now(timezone.utc)

        self.store.refresh(user)
        return self._identity(user, default_status=UserStatus.ACTIVE)

    def _create_from_provider(
        self,
        email: str,
        provider: ExternalProvider,
        profile: ExternalProfile,
        tokens: ProviderTokens,
        client_ip: Optional[str],
    ) -> AuthIdentity:
        referral_code = generate_unique_referral_code(self.store.referral_code_exists)
        location = self.location_resolver.resolve(client_ip)

        # User and linked account commit together
        with self.store.transaction():
            user = self.store.add_user(
                email=email,
                name=profile.name or f"{provider.display_name} User",
                image=profile.image,
                referral_code=referral_code,
                country_code=location.country_code,
                country=location.country,
                status=UserStatus.ACTIVE,
                role=UserRole.USER,
            )
            self.store.add_linked_account(
                user_id=user.id,
                provider=provider.name,
                provider_account_id=profile.provider_account_id,
                tokens=tokens,
            )

        self.store.refresh(user)
        logger.info(f"Created user {user.id} from {provider.name} sign-in")
        return self._identity(user, default_status=UserStatus.ACTIVE)

    def get_auth_methods(self, user_id: UUID) -> AuthMethods:
        """Report whether a password is set and which providers are linked."""
        user = self.store.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)

        providers = self.store.list_providers(user_id)
        return AuthMethods(
            has_password=user.has_password,
            oauth_providers=providers,
            has_github="github" in providers,
        )

    def setup_password(self, user_id: UUID, password: str) -> None:
        """
        Set a password, enabling credential sign-in for the account.

        Raises:
            ValidationError: If the password fails the strength policy
            UserNotFoundError: If the user doesn't exist
        """
        problems = password_strength_errors(password)
        if problems:
            raise ValidationError(problems[0], field_errors={"password": problems[0]})

        user = self.store.get_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)

        with self.store.transaction():
            user.password_hash = hash_password(password)
            user.updated_at = datetime.now(timezone.utc)

        logger.info(f"Password set for user {user.id}")

    @staticmethod
    def _identity(user: User, default_status: UserStatus) -> AuthIdentity:
        now = datetime.now(timezone.utc)
        return AuthIdentity(
            id=user.id,
            email=user.email,
            name=user.name,
            image=user.image,
            role=user.role or UserRole.USER,
            status=user.status or default_status,
            country=user.country_code or settings.DEFAULT_COUNTRY_CODE,
            referral_code=user.referral_code or "",
            created_at=user.created_at or now,
            updated_at=user.updated_at or now,
        )
