"""API dependencies for dependency injection."""

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.middleware.access_control import extract_session_token
from app.schemas.auth import SessionClaims, SessionUser
from app.services.auth_service import AuthService
from app.services.exceptions import AuthenticationError, SessionResolutionError
from app.services.location import LocationResolver, get_client_ip, get_location_resolver
from app.services.protection import ProtectionGate, get_protection_gate
from app.services.session_service import SessionService


def get_session_service() -> SessionService:
    """Get session service instance."""
    return SessionService()


def get_location_service() -> LocationResolver:
    """Get the location resolver."""
    return get_location_resolver()


def get_protection() -> ProtectionGate:
    """Get the abuse protection gate."""
    return get_protection_gate()


def get_auth_service(
    db: Session = Depends(get_db),
    location_resolver: LocationResolver = Depends(get_location_service),
) -> AuthService:
    """Get auth service instance."""
    return AuthService(db, location_resolver)


def get_request_ip(request: Request) -> Optional[str]:
    """Client IP from proxy headers or the socket peer."""
    peer = request.client.host if request.client else None
    return get_client_ip(request.headers, fallback=peer)


def get_optional_claims(
    request: Request,
    session_service: SessionService = Depends(get_session_service),
) -> Optional[SessionClaims]:
    """
    Get the claims of the current session, if any.

    Invalid, expired or malformed tokens count as no session.
    """
    token = extract_session_token(request)
    if not token:
        return None
    try:
        return session_service.decode_token(token)
    except (AuthenticationError, SessionResolutionError):
        return None


def get_optional_session(
    claims: Optional[SessionClaims] = Depends(get_optional_claims),
    session_service: SessionService = Depends(get_session_service),
) -> Optional[SessionUser]:
    """Get the current session user, or None when unauthenticated."""
    if claims is None:
        return None
    return session_service.session_user(claims)


def get_current_session(
    session: Optional[SessionUser] = Depends(get_optional_session),
) -> SessionUser:
    """
    Get the current session user.

    Raises:
        HTTPException: If there is no valid session
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def get_current_user_id(session: SessionUser = Depends(get_current_session)) -> UUID:
    """Get the current user's ID."""
    try:
        return UUID(session.id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
