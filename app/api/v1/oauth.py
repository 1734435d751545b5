"""OAuth client registry for the provider handshake."""

import logging
from typing import Any, Optional

from authlib.integrations.starlette_client import OAuth

from app.services.providers import EXTERNAL_PROVIDERS, ExternalProvider

logger = logging.getLogger(__name__)

oauth = OAuth()


def register_providers(registry: OAuth) -> OAuth:
    """Register every configured external provider with Authlib."""
    for provider in EXTERNAL_PROVIDERS.values():
        if not provider.is_configured:
            logger.info(f"OAuth provider {provider.name} not configured, skipping")
            continue
        client_id, client_secret = provider.client_credentials()
        registry.register(
            name=provider.name,
            client_id=client_id,
            client_secret=client_secret,
            authorize_url=provider.authorize_url,
            access_token_url=provider.access_token_url,
            api_base_url=provider.api_base_url,
            client_kwargs=provider.client_kwargs,
        )
    return registry


register_providers(oauth)


def get_oauth() -> OAuth:
    """Get the OAuth client registry."""
    return oauth


async def fetch_provider_payloads(
    client: Any, token: dict[str, Any]
) -> tuple[dict[str, Any], Optional[list[dict[str, Any]]]]:
    """
    Fetch the profile and, when the profile has no public email, the email list.

    Returns:
        Tuple of (user_info, emails)
    """
    response = await client.get("user", token=token)
    response.raise_for_status()
    user_info = response.json()

    emails = None
    if not user_info.get("email"):
        emails_response = await client.get("user/emails", token=token)
        if emails_response.status_code == 200:
            emails = emails_response.json()
    return user_info, emails


def get_provider_client(registry: OAuth, provider: ExternalProvider) -> Optional[Any]:
    return registry.create_client(provider.name)
