"""
Sign-in provider variants.

Two kinds of provider exist: the credential provider (email and password)
and external OAuth providers identified by name. Adding an external
provider means adding its registration settings and a profile mapper here.

Example usage:

    provider = get_external_provider("github")
    profile = provider.map_profile(user_info, emails)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

from app.config import settings
from app.schemas.auth import ExternalProfile, ProviderTokens
from app.services.exceptions import OAuthCallbackError

logger = logging.getLogger(__name__)


def _primary_github_email(user_info: dict[str, Any], emails: list[dict[str, Any]]) -> Optional[str]:
    if user_info.get("email"):
        return user_info["email"]
    for entry in emails:
        if entry.get("primary") and entry.get("verified"):
            return entry.get("email")
    for entry in emails:
        if entry.get("verified"):
            return entry.get("email")
    return None


def map_github_profile(user_info: dict[str, Any], emails: list[dict[str, Any]]) -> ExternalProfile:
    """Map the GitHub ``/user`` and ``/user/emails`` payloads to a profile."""
    email = _primary_github_email(user_info, emails)
    if not email or user_info.get("id") is None:
        logger.warning(f"GitHub profile {user_info.get('id')} has no usable email or id")
        raise OAuthCallbackError("GitHub did not return an email address for this account.")

    return ExternalProfile(
        provider_account_id=str(user_info["id"]),
        email=email,
        name=user_info.get("name") or user_info.get("login"),
        image=user_info.get("avatar_url"),
    )


@dataclass(frozen=True)
class CredentialProvider:
    """Email and password sign-in."""

    name: str = "credentials"


@dataclass(frozen=True)
class ExternalProvider:
    """An OAuth identity provider."""

    name: str
    display_name: str
    client_kwargs: dict[str, Any] = field(default_factory=dict)
    authorize_url: Optional[str] = None
    access_token_url: Optional[str] = None
    api_base_url: Optional[str] = None
    profile_mapper: Optional[Callable[[dict[str, Any], list[dict[str, Any]]], ExternalProfile]] = None

    def map_profile(
        self, user_info: dict[str, Any], emails: Optional[list[dict[str, Any]]] = None
    ) -> ExternalProfile:
        if self.profile_mapper is None:
            logger.error(f"Provider {self.name} has no profile mapper")
            raise OAuthCallbackError(f"No profile mapping for provider {self.name}")
        return self.profile_mapper(user_info, emails or [])

    def client_credentials(self) -> tuple[Optional[str], Optional[str]]:
        prefix = self.name.upper()
        return (
            getattr(settings, f"{prefix}_CLIENT_ID", None),
            getattr(settings, f"{prefix}_CLIENT_SECRET", None),
        )

    @property
    def is_configured(self) -> bool:
        client_id, client_secret = self.client_credentials()
        return bool(client_id and client_secret)


Provider = Union[CredentialProvider, ExternalProvider]

CREDENTIALS = CredentialProvider()

GITHUB = ExternalProvider(
    name="github",
    display_name="GitHub",
    client_kwargs={"scope": "read:user user:email"},
    authorize_url="https://github.com/login/oauth/authorize",
    access_token_url="https://github.com/login/oauth/access_token",
    api_base_url="https://api.github.com/",
    profile_mapper=map_github_profile,
)

EXTERNAL_PROVIDERS: dict[str, ExternalProvider] = {GITHUB.name: GITHUB}


def get_external_provider(name: str) -> Optional[ExternalProvider]:
    """Look up a supported external provider by name."""
    return EXTERNAL_PROVIDERS.get(name.lower())


def tokens_from_oauth_response(token: dict[str, Any]) -> ProviderTokens:
    """Keep the provider token response fields that are stored with the account."""
    return ProviderTokens(
        access_token=token.get("access_token"),
        refresh_token=token.get("refresh_token"),
        expires_at=token.get("expires_at"),
        token_type=token.get("token_type"),
        scope=token.get("scope"),
        id_token=token.get("id_token"),
        session_state=token.get("session_state"),
    )
