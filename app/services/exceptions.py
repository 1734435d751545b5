"""Custom exceptions for the service layer."""

from typing import Optional
from uuid import UUID


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, code: str = "SERVICE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed input, reported per field."""

    def __init__(self, message: str, field_errors: Optional[dict[str, str]] = None):
        self.field_errors = field_errors or {}
        super().__init__(message=message, code="ValidationError")


class InvalidCredentialsError(ServiceError):
    """
    Credential sign-in failed.

    Raised for unknown emails, wrong passwords and banned accounts alike so
    callers cannot tell which one occurred.
    """

    def __init__(self):
        super().__init__(message="Invalid email or password", code="InvalidCredentials")


class OAuthOnlyUserError(ServiceError):
    """The account exists but has no password; it signs in through a provider."""

    def __init__(self):
        super().__init__(
            message=(
                "This account was created with GitHub. Please sign in with GitHub "
                "or set up a password first."
            ),
            code="OAUTH_ONLY_USER",
        )


class EmailTakenError(ServiceError):
    """Sign-up conflict on an existing email."""

    def __init__(self):
        super().__init__(message="An account with this email already exists", code="EmailTaken")


class StorageError(ServiceError):
    """Any persistence failure. The underlying cause is logged, not exposed."""

    def __init__(self, message: str = "An unexpected error occurred. Please try again."):
        super().__init__(message=message, code="StorageFailure")


class ProtectionDeniedError(ServiceError):
    """A request refused by the abuse protection gate."""

    def __init__(self, message: str, reason: str, retry_after: Optional[int] = None):
        self.reason = reason
        self.retry_after = retry_after
        super().__init__(message=message, code="ProtectionDenied")


class UserNotFoundError(ServiceError):
    """User not found error."""

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        super().__init__(message=f"User with ID {user_id} not found", code="USER_NOT_FOUND")


class AuthenticationError(ServiceError):
    """Missing, invalid or expired session."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, code="SessionRequired")


class SessionResolutionError(ServiceError):
    """A verified token whose claims could not be turned into a session."""

    def __init__(self, message: str = "Session could not be resolved"):
        super().__init__(message=message, code="session_error")


class OAuthAccountNotLinkedError(ServiceError):
    """The provider identity cannot be attached to the matching account."""

    def __init__(self):
        super().__init__(
            message="The email on the account is already linked, but not with this OAuth account.",
            code="OAuthAccountNotLinked",
        )


class OAuthCallbackError(ServiceError):
    """The provider response could not be used to sign in."""

    def __init__(self, message: str = "Error in handling the response from an OAuth provider."):
        super().__init__(message=message, code="OAuthCallback")
