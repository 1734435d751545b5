"""Best-effort country lookup from the client IP address."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Mapping, Optional

import httpx
import pycountry

from app.config import settings

logger = logging.getLogger(__name__)

FORWARDED_IP_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


@dataclass(frozen=True)
class LocationData:
    """Country code (ISO alpha-2) and display name."""

    country_code: str
    country: Optional[str]


def default_location() -> LocationData:
    return LocationData(
        country_code=settings.DEFAULT_COUNTRY_CODE,
        country=settings.DEFAULT_COUNTRY,
    )


def get_client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> Optional[str]:
    """
    Extract the client IP from proxy headers.

    The first address of ``X-Forwarded-For`` wins, then ``X-Real-IP`` and
    ``CF-Connecting-IP``, then the socket peer address passed as ``fallback``.
    """
    for header in FORWARDED_IP_HEADERS:
        value = headers.get(header)
        if value:
            ip = value.split(",")[0].strip()
            if ip:
                return ip
    return fallback


def country_name(country_code: str) -> Optional[str]:
    """English display name for an ISO alpha-2 code."""
    country = pycountry.countries.get(alpha_2=country_code.upper())
    if country is None:
        return None
    return getattr(country, "common_name", None) or country.name


class LocationResolver(ABC):
    """
    Abstract interface for IP geolocation.

    Implementations never raise: any failure resolves to the default location.
    """

    @abstractmethod
    def resolve(self, ip: Optional[str]) -> LocationData:
        """
        Resolve a client IP to a country.

        Args:
            ip: Client IP address, or None when unknown

        Returns:
            LocationData, the default location on any failure
        """
        pass


class DefaultLocationResolver(LocationResolver):
    """Resolver used when no lookup service is configured."""

    def resolve(self, ip: Optional[str]) -> LocationData:
        return default_location()


class IPInfoLocationResolver(LocationResolver):
    """Resolver backed by the IPinfo HTTP API."""

    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.base_url = (base_url or settings.IPINFO_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.LOCATION_LOOKUP_TIMEOUT
        self._transport = transport

    def build_url(self, ip: str) -> str:
        return f"{self.base_url}/{ip}"

    def resolve(self, ip: Optional[str]) -> LocationData:
        if not ip:
            logger.info("No client IP available, using default location")
            return default_location()

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.get(self.build_url(ip), params={"token": self.token})
        except httpx.HTTPError as e:
            logger.warning(f"Location lookup failed for IP {ip}: {e}")
            return default_location()

        if response.status_code != 200:
            logger.warning(f"IPInfo API error {response.status_code} for IP {ip}")
            return default_location()

        try:
            data = response.json()
        except ValueError:
            logger.warning(f"IPInfo returned a non-JSON body for IP {ip}")
            return default_location()

        code = (data.get("country") or "").upper()
        if len(code) != 2:
            return default_location()

        return LocationData(
            country_code=code,
            country=country_name(code) or settings.DEFAULT_COUNTRY,
        )


def get_location_resolver() -> LocationResolver:
    """Build the resolver for the current configuration."""
    if not settings.IPINFO_TOKEN:
        logger.debug("IPInfo token not configured, using default location")
        return DefaultLocationResolver()
    return IPInfoLocationResolver(token=settings.IPINFO_TOKEN)
