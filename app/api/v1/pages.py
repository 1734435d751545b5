"""
Page routes.

These give the access-control redirects real destinations. They return
JSON; rendering is the frontend's job.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.v1.dependencies import get_current_session, get_optional_session
from app.schemas.auth import AuthErrorInfo, SessionUser
from app.services.error_codes import auth_error_message

router = APIRouter()


@router.get("/", include_in_schema=False)
def home(session: Optional[SessionUser] = Depends(get_optional_session)) -> dict:
    return {"page": "home", "signed_in": session is not None}


@router.get("/maintenance", include_in_schema=False)
def maintenance() -> dict:
    return {"page": "maintenance"}


@router.get("/login", include_in_schema=False)
def login_page(
    callback_url: Optional[str] = Query(default=None, alias="callbackUrl"),
    error: Optional[str] = None,
) -> dict:
    return {"page": "login", "callbackUrl": callback_url, "error": error}


@router.get("/register", include_in_schema=False)
def register_page(
    callback_url: Optional[str] = Query(default=None, alias="callbackUrl"),
) -> dict:
    return {"page": "register", "callbackUrl": callback_url}


@router.get("/dashboard", include_in_schema=False)
def dashboard(session: Optional[SessionUser] = Depends(get_optional_session)) -> dict:
    # Crawlers reach this page without a session
    user = session.model_dump(mode="json") if session else None
    return {"page": "dashboard", "user": user}


@router.get("/admin", include_in_schema=False)
def admin(session: SessionUser = Depends(get_current_session)) -> dict:
    return {"page": "admin", "user": session.model_dump(mode="json")}


@router.get(
    "/auth/error",
    response_model=AuthErrorInfo,
    summary="Describe an authentication error",
)
def auth_error(error: Optional[str] = None) -> AuthErrorInfo:
    """Map an error code to its user-facing message."""
    return AuthErrorInfo(error=error or "Unknown", message=auth_error_message(error))
