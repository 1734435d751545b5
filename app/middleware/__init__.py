"""Request middleware."""

from app.middleware.access_control import (
    AccessAction,
    AccessControlMiddleware,
    AccessDecision,
    RouteConfig,
    Zone,
    evaluate_access,
)

__all__ = [
    "AccessAction",
    "AccessControlMiddleware",
    "AccessDecision",
    "RouteConfig",
    "Zone",
    "evaluate_access",
]
