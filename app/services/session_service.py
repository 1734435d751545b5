"""Session token assembly and resolution."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from pydantic import ValidationError as PydanticValidationError

from app.config import settings
from app.models.user import UserRole, UserStatus
from app.schemas.auth import AuthIdentity, SessionClaims, SessionUser, SessionView
from app.services.exceptions import AuthenticationError, SessionResolutionError

logger = logging.getLogger(__name__)

# JWT settings
ALGORITHM = "HS256"


class SessionService:
    """
    Builds signed session tokens from identities and reads them back.

    Tokens expire a fixed time after issuance; reading a token never
    extends it.
    """

    def __init__(self, secret_key: Optional[str] = None, max_age: Optional[timedelta] = None):
        self.secret_key = secret_key or settings.SECRET_KEY
        self.max_age = max_age or timedelta(seconds=settings.session_max_age_seconds)

    def build_claims(self, identity: AuthIdentity) -> SessionClaims:
        """
        Build session claims from a freshly authenticated identity.

        Missing optional values fall back to role ``user``, status ``active``,
        country ``KE`` and an empty referral code.
        """
        return SessionClaims(
            id=str(identity.id),
            email=identity.email,
            name=identity.name,
            image=identity.image,
            role=identity.role or UserRole.USER,
            status=identity.status or UserStatus.ACTIVE,
            country=identity.country or settings.DEFAULT_COUNTRY_CODE,
            referral_code=identity.referral_code or "",
        )

    def issue_token(self, claims: SessionClaims, now: Optional[datetime] = None) -> str:
        """
        Sign claims into a session token.

        Args:
            claims: Claims to embed
            now: Issuance time, defaults to the current time

        Returns:
            JWT token string
        """
        issued_at = now or datetime.now(timezone.utc)
        expire = issued_at + self.max_age

        payload = claims.model_dump(mode="json", exclude={"iat", "exp"})
        payload["sub"] = claims.id
        payload["iat"] = int(issued_at.timestamp())
        payload["exp"] = int(expire.timestamp())

        return jwt.encode(payload, self.secret_key, algorithm=ALGORITHM)

    def create_session_token(self, identity: AuthIdentity) -> str:
        """Build claims for an identity and sign them."""
        return self.issue_token(self.build_claims(identity))

    def decode_token(self, token: str) -> SessionClaims:
        """
        Verify a session token and extract its claims.

        Raises:
            AuthenticationError: If the token is invalid or expired
            SessionResolutionError: If the token verifies but its claims are malformed
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            raise AuthenticationError(f"Invalid token: {str(e)}")

        try:
            return SessionClaims.model_validate(payload)
        except PydanticValidationError as e:
            logger.warning(f"Session token carried malformed claims: {e.error_count()} errors")
            raise SessionResolutionError()

    def resolve(self, token: Optional[str]) -> Optional[SessionUser]:
        """
        Resolve a raw token into a session user.

        Returns:
            SessionUser, or None when there is no valid token

        Raises:
            SessionResolutionError: If a verified token cannot be turned into a session
        """
        if not token:
            return None
        try:
            claims = self.decode_token(token)
        except AuthenticationError as e:
            logger.debug(f"Ignoring session token: {e.message}")
            return None
        return self.session_user(claims)

    def session_user(self, claims: SessionClaims, now: Optional[datetime] = None) -> SessionUser:
        """
        Copy claims into the user-facing session shape.

        ``created_at`` and ``updated_at`` are stamped with the read time; they
        are not the account's record timestamps.
        """
        read_at = now or datetime.now(timezone.utc)
        return SessionUser(
            id=claims.id,
            email=claims.email,
            name=claims.name,
            image=claims.image,
            role=claims.role,
            status=claims.status,
            country=claims.country,
            referral_code=claims.referral_code,
            created_at=read_at,
            updated_at=read_at,
        )

    def session_view(self, claims: SessionClaims) -> SessionView:
        """Session user plus the token's absolute expiry."""
        if claims.exp is not None:
            expires = datetime.fromtimestamp(claims.exp, tz=timezone.utc)
        else:
            expires = datetime.now(timezone.utc) + self.max_age
        return SessionView(user=self.session_user(claims), expires=expires)
