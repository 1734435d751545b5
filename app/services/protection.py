"""
Abuse protection gate for sign-up and sign-in.

The gate is consulted once before an authentication attempt touches the
credential store. A denial stops the attempt; there is no retry.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum as PyEnum
from typing import Optional

import redis

from app.config import settings

logger = logging.getLogger(__name__)

CRAWLER_PATTERN = re.compile(
    r"bot|crawl|spider|slurp|bingpreview|facebookexternalhit|twitterbot|linkedinbot|"
    r"whatsapp|telegram|discord|googlebot|bingbot|yandexbot|baiduspider|duckduckbot|"
    r"applebot|facebot|ia_archiver",
    re.IGNORECASE,
)


def is_crawler(user_agent: Optional[str]) -> bool:
    """Whether a user agent matches a known crawler signature."""
    return bool(user_agent) and CRAWLER_PATTERN.search(user_agent) is not None


class ProtectedAction(str, PyEnum):
    """Operations guarded by the gate."""

    SIGN_UP = "signup"
    SIGN_IN = "signin"


class DenialReason(str, PyEnum):
    RATE_LIMIT = "rate_limit"
    BOT = "bot"
    SHIELD = "shield"


@dataclass(frozen=True)
class ProtectionDecision:
    """Outcome of a protection check."""

    allowed: bool
    reason: Optional[DenialReason] = None
    retry_after: Optional[int] = None

    @classmethod
    def allow(cls) -> "ProtectionDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, retry_after: Optional[int] = None) -> "ProtectionDecision":
        return cls(allowed=False, reason=reason, retry_after=retry_after)

    @property
    def message(self) -> str:
        if self.reason == DenialReason.RATE_LIMIT:
            wait = f" Please wait {self.retry_after} seconds before trying again." if self.retry_after else ""
            return f"Too many requests. Please try again later.{wait}"
        if self.reason == DenialReason.BOT:
            return "Automated requests are not allowed."
        return "Request blocked for security reasons."


class ProtectionGate(ABC):
    """
    Abstract interface for rate limiting and bot detection.

    Allows swapping the Redis limiter for a hosted protection service
    by implementing this interface.
    """

    @abstractmethod
    def protect(
        self,
        client_ip: Optional[str],
        user_agent: Optional[str],
        action: ProtectedAction,
    ) -> ProtectionDecision:
        """
        Decide whether a request may proceed.

        Args:
            client_ip: Requesting IP address
            user_agent: Raw User-Agent header
            action: Operation being attempted

        Returns:
            ProtectionDecision
        """
        pass


class AllowAllGate(ProtectionGate):
    """Gate that never denies. Used when protection is disabled."""

    def protect(self, client_ip, user_agent, action) -> ProtectionDecision:
        return ProtectionDecision.allow()


class RedisRateLimitGate(ProtectionGate):
    """
    Fixed-window rate limiter keyed on (action, client IP).

    Crawler user agents are refused outright on authentication actions.
    """

    KEY_PREFIX = "protect"

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        limit: Optional[int] = None,
        window_seconds: int = 60,
    ):
        self.client = client or redis.Redis.from_url(settings.REDIS_URL)
        self.limit = limit or settings.AUTH_RATE_LIMIT_PER_MINUTE
        self.window_seconds = window_seconds

    def _window_key(self, action: ProtectedAction, client_ip: str, now: float) -> tuple[str, int]:
        window = int(now // self.window_seconds)
        reset_at = (window + 1) * self.window_seconds
        return f"{self.KEY_PREFIX}:{action.value}:{client_ip}:{window}", reset_at

    def protect(self, client_ip, user_agent, action) -> ProtectionDecision:
        if is_crawler(user_agent):
            logger.info(f"Blocked automated {action.value} attempt from {client_ip}")
            return ProtectionDecision.deny(DenialReason.BOT)

        now = time.time()
        key, reset_at = self._window_key(action, client_ip or "unknown", now)

        try:
            pipe = self.client.pipeline()
            pipe.incr(key)
            pipe.expire(key, self.window_seconds)
            count, _ = pipe.execute()
        except redis.RedisError as e:
            # Limiter unavailable: let the attempt through
            logger.error(f"Rate limiter unavailable: {e}")
            return ProtectionDecision.allow()

        if count > self.limit:
            retry_after = max(1, int(reset_at - now))
            logger.info(f"Rate limited {action.value} from {client_ip} ({count}/{self.limit})")
            return ProtectionDecision.deny(DenialReason.RATE_LIMIT, retry_after=retry_after)

        return ProtectionDecision.allow()


def get_protection_gate() -> ProtectionGate:
    """Build the gate for the current configuration."""
    if not settings.PROTECTION_ENABLED:
        return AllowAllGate()
    return RedisRateLimitGate()
