"""
Route-level access control.

``evaluate_access`` classifies one request into a zone and returns an
explicit decision; ``AccessControlMiddleware`` resolves the session, asks
for a decision and applies it. Zones are checked in a fixed order and the
first match wins:

    public -> auth -> admin -> api -> default (protected)

Recognised crawlers are let through protected pages without a session so
they can read page metadata.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Optional
from urllib.parse import urlencode

from fastapi import status
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from app.config import settings
from app.schemas.auth import SessionUser
from app.services.exceptions import SessionResolutionError
from app.services.protection import is_crawler
from app.services.session_service import SessionService

logger = logging.getLogger(__name__)

PATHNAME_HEADER = "x-pathname"
SESSION_ERROR_MARKER = "session_error"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

# Framework assets and well-known files
ASSET_PATTERN = re.compile(r"^/(_next|static|favicon|sitemap|robots|manifest)")
FILE_EXTENSION_PATTERN = re.compile(r"\.\w+$")


@dataclass(frozen=True)
class RouteConfig:
    """Path groups used for zone classification."""

    public: tuple[str, ...] = ("/", "/maintenance", "/auth/error")
    auth: tuple[str, ...] = ("/login", "/register")
    admin: tuple[str, ...] = ("/admin",)
    api_prefix: str = "/api"
    unprotected_api: tuple[str, ...] = ("/api/auth", "/api/health")
    admin_api_prefix: str = "/api/admin"
    login_path: str = "/login"
    register_path: str = "/register"
    dashboard_path: str = "/dashboard"

    @classmethod
    def from_settings(cls) -> "RouteConfig":
        prefix = settings.API_PREFIX.rstrip("/") or "/api"
        return cls(
            api_prefix=prefix,
            unprotected_api=(
                f"{prefix}/auth",
                f"{prefix}/health",
                f"{prefix}/docs",
                f"{prefix}/redoc",
                f"{prefix}/openapi.json",
            ),
            admin_api_prefix=f"{prefix}/admin",
        )


class AccessAction(str, PyEnum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    ERROR = "error"


class Zone(str, PyEnum):
    BYPASS = "bypass"
    PUBLIC = "public"
    AUTH = "auth"
    ADMIN = "admin"
    API = "api"
    DEFAULT = "default"


@dataclass(frozen=True)
class AccessDecision:
    """What to do with a request."""

    action: AccessAction
    zone: Zone
    location: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def allow(cls, zone: Zone, headers: Optional[dict[str, str]] = None) -> "AccessDecision":
        return cls(action=AccessAction.ALLOW, zone=zone, headers=headers or {})

    @classmethod
    def redirect(
        cls, zone: Zone, path: str, params: Optional[dict[str, str]] = None
    ) -> "AccessDecision":
        location = f"{path}?{urlencode(params)}" if params else path
        return cls(action=AccessAction.REDIRECT, zone=zone, location=location)

    @classmethod
    def deny(cls, zone: Zone, message: str, status_code: int) -> "AccessDecision":
        return cls(action=AccessAction.ERROR, zone=zone, error=message, status_code=status_code)


def path_matches(path: str, routes: tuple[str, ...]) -> bool:
    """Exact match or a sub-path of one of ``routes``."""
    return any(path == route or path.startswith(route + "/") for route in routes)


def is_bypassed(path: str, routes: Optional[RouteConfig] = None) -> bool:
    """
    Static assets skip access control.

    A file extension alone is enough outside the API and admin zones; inside
    them dotted paths are still checked.
    """
    if ASSET_PATTERN.match(path):
        return True
    if FILE_EXTENSION_PATTERN.search(path) is None:
        return False
    routes = routes or RouteConfig.from_settings()
    return not path_matches(path, (routes.api_prefix,) + routes.admin)


def classify_zone(path: str, routes: RouteConfig) -> Zone:
    """Zone of a path, first match wins."""
    if is_bypassed(path, routes):
        return Zone.BYPASS
    if path_matches(path, routes.public):
        return Zone.PUBLIC
    if path_matches(path, routes.auth):
        return Zone.AUTH
    if path_matches(path, routes.admin):
        return Zone.ADMIN
    if path_matches(path, (routes.api_prefix,)):
        return Zone.API
    return Zone.DEFAULT


def evaluate_access(
    path: str,
    user_agent: Optional[str],
    session: Optional[SessionUser],
    session_error: bool = False,
    routes: Optional[RouteConfig] = None,
) -> AccessDecision:
    """
    Decide how to handle a request.

    Args:
        path: Request path
        user_agent: Raw User-Agent header
        session: Resolved session, None when unauthenticated
        session_error: Session resolution failed for this request
        routes: Path groups, defaults to the configured ones

    Returns:
        AccessDecision
    """
    routes = routes or RouteConfig.from_settings()
    zone = classify_zone(path, routes)

    if zone == Zone.BYPASS:
        return AccessDecision.allow(zone)

    is_bot = is_crawler(user_agent)
    pathname = {PATHNAME_HEADER: path}

    if session_error:
        if zone in (Zone.PUBLIC, Zone.AUTH):
            return AccessDecision.allow(zone)
        if is_bot:
            return AccessDecision.allow(zone)
        return AccessDecision.redirect(
            zone,
            routes.login_path,
            {"callbackUrl": path, "error": SESSION_ERROR_MARKER},
        )

    is_auth = session is not None
    is_admin = is_auth and session.is_admin

    if zone == Zone.PUBLIC:
        return AccessDecision.allow(zone, pathname)

    if zone == Zone.AUTH:
        if is_auth:
            return AccessDecision.redirect(zone, routes.dashboard_path)
        return AccessDecision.allow(zone, pathname)

    if zone == Zone.ADMIN:
        if not is_auth:
            return AccessDecision.redirect(zone, routes.register_path, {"callbackUrl": path})
        if not is_admin:
            return AccessDecision.redirect(zone, routes.dashboard_path)
        return AccessDecision.allow(zone, dict(NO_CACHE_HEADERS))

    if zone == Zone.API:
        if path_matches(path, routes.unprotected_api):
            return AccessDecision.allow(zone)
        if path_matches(path, (routes.admin_api_prefix,)):
            if not is_auth:
                return AccessDecision.deny(zone, "Authentication required", status.HTTP_401_UNAUTHORIZED)
            if not is_admin:
                return AccessDecision.deny(zone, "Admin access required", status.HTTP_403_FORBIDDEN)
            return AccessDecision.allow(zone)
        if not is_auth:
            return AccessDecision.deny(zone, "Authentication required", status.HTTP_401_UNAUTHORIZED)
        return AccessDecision.allow(zone)

    # Default: protected
    if not is_auth and not is_bot:
        return AccessDecision.redirect(zone, routes.login_path, {"callbackUrl": path})
    return AccessDecision.allow(zone, pathname)


def extract_session_token(request: Request) -> Optional[str]:
    """Session token from the session cookie or a Bearer header."""
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


class AccessControlMiddleware(BaseHTTPMiddleware):
    """Applies :func:`evaluate_access` to every request."""

    def __init__(
        self,
        app: ASGIApp,
        session_service: Optional[SessionService] = None,
        routes: Optional[RouteConfig] = None,
    ):
        super().__init__(app)
        self.session_service = session_service or SessionService()
        self.routes = routes or RouteConfig.from_settings()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        if is_bypassed(path, self.routes):
            return await call_next(request)

        session = None
        session_error = False
        try:
            session = self.session_service.resolve(extract_session_token(request))
        except SessionResolutionError as e:
            logger.warning(f"Session resolution failed for {path}: {e.message}")
            session_error = True

        request.state.session = session

        decision = evaluate_access(
            path,
            request.headers.get("user-agent", ""),
            session,
            session_error=session_error,
            routes=self.routes,
        )

        if decision.action == AccessAction.REDIRECT:
            return RedirectResponse(decision.location, status_code=status.HTTP_307_TEMPORARY_REDIRECT)

        if decision.action == AccessAction.ERROR:
            return JSONResponse({"error": decision.error}, status_code=decision.status_code)

        response = await call_next(request)
        for name, value in decision.headers.items():
            response.headers[name] = value
        return response
