"""Authentication endpoints."""

import logging
from typing import Optional
from urllib.parse import urlencode
from uuid import UUID

import httpx
from authlib.integrations.starlette_client import OAuth, OAuthError
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse

from app.api.v1.dependencies import (
    get_auth_service,
    get_current_user_id,
    get_optional_claims,
    get_protection,
    get_request_ip,
    get_session_service,
)
from app.api.v1.oauth import fetch_provider_payloads, get_oauth, get_provider_client
from app.config import settings
from app.schemas.auth import (
    FailureResult,
    MessageResponse,
    SessionClaims,
    SessionView,
    SetupPasswordRequest,
    SignInRequest,
    SignInResult,
    SignUpRequest,
    SignUpResult,
)
from app.services.auth_service import AuthService, resolve_redirect_target
from app.services.exceptions import (
    EmailTakenError,
    InvalidCredentialsError,
    OAuthAccountNotLinkedError,
    OAuthCallbackError,
    OAuthOnlyUserError,
    ProtectionDeniedError,
    ServiceError,
    StorageError,
    UserNotFoundError,
    ValidationError,
)
from app.services.protection import DenialReason, ProtectedAction, ProtectionGate
from app.services.providers import CREDENTIALS, get_external_provider, tokens_from_oauth_response
from app.services.session_service import SessionService

logger = logging.getLogger(__name__)

router = APIRouter()

CALLBACK_SESSION_KEY = "oauth_callback_url"
AUTH_ERROR_PATH = "/auth/error"


def failure_response(error: ServiceError, status_code: int) -> JSONResponse:
    """Tagged failure body for an authentication error."""
    body = FailureResult(error=error.code, message=error.message)
    headers = None
    if isinstance(error, ValidationError) and error.field_errors:
        body.field_errors = error.field_errors
    if isinstance(error, ProtectionDeniedError) and error.retry_after:
        body.retry_after = error.retry_after
        headers = {"Retry-After": str(error.retry_after)}
    return JSONResponse(
        body.model_dump(exclude_none=True),
        status_code=status_code,
        headers=headers,
    )


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def check_protection(
    gate: ProtectionGate,
    request: Request,
    client_ip: Optional[str],
    action: ProtectedAction,
) -> None:
    """
    Consult the protection gate before touching the credential store.

    Raises:
        ProtectionDeniedError: If the gate refuses the request
    """
    decision = gate.protect(client_ip, request.headers.get("user-agent", ""), action)
    if not decision.allowed:
        logger.info(f"Protection denied {action.value} from {client_ip}: {decision.reason}")
        raise ProtectionDeniedError(
            decision.message,
            reason=decision.reason.value if decision.reason else "denied",
            retry_after=decision.retry_after,
        )


def protection_status(error: ProtectionDeniedError) -> int:
    if error.reason == DenialReason.RATE_LIMIT.value:
        return status.HTTP_429_TOO_MANY_REQUESTS
    return status.HTTP_403_FORBIDDEN


def auth_error_redirect(code: str) -> RedirectResponse:
    return RedirectResponse(
        f"{AUTH_ERROR_PATH}?{urlencode({'error': code})}",
        status_code=status.HTTP_303_SEE_OTHER,
    )


@router.post(
    "/signup",
    response_model=SignUpResult,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": FailureResult}, 429: {"model": FailureResult}},
    summary="Register a new user",
    description="Create an inactive credential account. Failures return a tagged result.",
)
def sign_up(
    data: SignUpRequest,
    request: Request,
    client_ip: Optional[str] = Depends(get_request_ip),
    gate: ProtectionGate = Depends(get_protection),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Register a new user."""
    try:
        check_protection(gate, request, client_ip, ProtectedAction.SIGN_UP)
        return auth_service.sign_up(data, client_ip)
    except ProtectionDeniedError as e:
        return failure_response(e, protection_status(e))
    except EmailTakenError as e:
        return failure_response(e, status.HTTP_409_CONFLICT)
    except StorageError as e:
        return failure_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post(
    "/signin",
    response_model=SignInResult,
    responses={401: {"model": FailureResult}, 429: {"model": FailureResult}},
    summary="Sign in with email and password",
    description="""
    Authenticate with email and password.

    On success the session cookie is set and the response names the
    destination the client should navigate to. ``callback_url`` is honoured
    only when it is a same-origin relative path.
    """,
)
def sign_in(
    data: SignInRequest,
    request: Request,
    response: Response,
    client_ip: Optional[str] = Depends(get_request_ip),
    gate: ProtectionGate = Depends(get_protection),
    auth_service: AuthService = Depends(get_auth_service),
    session_service: SessionService = Depends(get_session_service),
):
    """Sign in and get a session."""
    try:
        check_protection(gate, request, client_ip, ProtectedAction.SIGN_IN)
        identity = auth_service.authenticate(CREDENTIALS, email=data.email, password=data.password)
    except ProtectionDeniedError as e:
        return failure_response(e, protection_status(e))
    except (InvalidCredentialsError, OAuthOnlyUserError) as e:
        return failure_response(e, status.HTTP_401_UNAUTHORIZED)
    except StorageError as e:
        return failure_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    token = session_service.create_session_token(identity)
    set_session_cookie(response, token)

    return SignInResult(
        redirect_to=resolve_redirect_target(data.callback_url),
        access_token=token,
    )


@router.post(
    "/signout",
    status_code=status.HTTP_303_SEE_OTHER,
    summary="Sign out",
    description="Clear the session cookie and redirect to the home page.",
)
def sign_out() -> RedirectResponse:
    """Sign out."""
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return response


@router.get(
    "/session",
    response_model=Optional[SessionView],
    summary="Get current session",
)
def get_session(
    claims: Optional[SessionClaims] = Depends(get_optional_claims),
    session_service: SessionService = Depends(get_session_service),
) -> Optional[SessionView]:
    """Get the session view, or null when signed out."""
    if claims is None:
        return None
    return session_service.session_view(claims)


@router.get(
    "/signin/{provider_name}",
    summary="Start an OAuth sign-in",
    description="Redirect to the provider's authorization page.",
)
async def oauth_sign_in(
    provider_name: str,
    request: Request,
    callback_url: Optional[str] = Query(default=None, alias="callbackUrl"),
    registry: OAuth = Depends(get_oauth),
):
    """Begin the provider handshake."""
    provider = get_external_provider(provider_name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider {provider_name}",
        )

    client = get_provider_client(registry, provider)
    if client is None:
        return auth_error_redirect("Configuration")

    request.session[CALLBACK_SESSION_KEY] = resolve_redirect_target(callback_url)
    redirect_uri = f"{settings.BASE_URL.rstrip('/')}{settings.API_PREFIX}/auth/callback/{provider.name}"
    try:
        return await client.authorize_redirect(request, redirect_uri)
    except (OAuthError, httpx.HTTPError) as e:
        logger.error(f"Could not start {provider.name} sign-in: {e}")
        return auth_error_redirect("OAuthSignin")


@router.get(
    "/callback/{provider_name}",
    summary="OAuth callback",
    description="Complete the provider handshake, then link or create the account.",
)
async def oauth_callback(
    provider_name: str,
    request: Request,
    client_ip: Optional[str] = Depends(get_request_ip),
    registry: OAuth = Depends(get_oauth),
    auth_service: AuthService = Depends(get_auth_service),
    session_service: SessionService = Depends(get_session_service),
):
    """Finish an OAuth sign-in."""
    provider = get_external_provider(provider_name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider {provider_name}",
        )

    client = get_provider_client(registry, provider)
    if client is None:
        return auth_error_redirect("Configuration")

    try:
        token = await client.authorize_access_token(request)
        user_info, emails = await fetch_provider_payloads(client, token)
        profile = provider.map_profile(user_info, emails)
    except (OAuthError, httpx.HTTPError) as e:
        logger.warning(f"{provider.name} callback failed: {e}")
        return auth_error_redirect("OAuthCallback")
    except OAuthCallbackError as e:
        return auth_error_redirect(e.code)

    try:
        identity = auth_service.authenticate(
            provider,
            profile=profile,
            tokens=tokens_from_oauth_response(token),
            client_ip=client_ip,
        )
    except OAuthAccountNotLinkedError as e:
        return auth_error_redirect(e.code)
    except InvalidCredentialsError:
        return auth_error_redirect("AccessDenied")
    except StorageError:
        return auth_error_redirect("OAuthCreateAccount")

    destination = request.session.pop(CALLBACK_SESSION_KEY, None) or resolve_redirect_target(None)
    response = RedirectResponse(destination, status_code=status.HTTP_303_SEE_OTHER)
    set_session_cookie(response, session_service.create_session_token(identity))
    return response


@router.post(
    "/setup-password",
    response_model=MessageResponse,
    summary="Set a password",
    description="Add a password to the signed-in account so it can use credential sign-in.",
)
def setup_password(
    data: SetupPasswordRequest,
    user_id: UUID = Depends(get_current_user_id),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    """Set up a password for the current user."""
    try:
        auth_service.setup_password(user_id, data.password)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)

    return MessageResponse(message="Password setup successfully")
