"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from app.api.v1.router import api_router, page_router
from app.config import settings
from app.db.session import engine
from app.db.base import Base
from app.middleware.access_control import AccessControlMiddleware
from app.schemas.auth import FailureResult

from app import models  # noqa: F401 - register models with Base.metadata

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    configure_logging()
    # Startup: Create database tables
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started")
    yield


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report request validation failures as a tagged result with per-field messages."""
    field_errors: dict[str, str] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = loc[-1] if loc else "body"
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        field_errors.setdefault(field, message)

    first_message = next(iter(field_errors.values()), "Invalid request")
    body = FailureResult(error="ValidationError", message=first_message, field_errors=field_errors)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Registration, sign-in, sessions and route access control for the community platform.",
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url=f"{settings.API_PREFIX}/docs",
        redoc_url=f"{settings.API_PREFIX}/redoc",
        lifespan=lifespan,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Route gating runs inside the session and CORS layers
    app.add_middleware(AccessControlMiddleware)

    # OAuth handshake state
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.SECRET_KEY,
        session_cookie="oauth_state",
        https_only=settings.SESSION_COOKIE_SECURE,
        same_site="lax",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include API router
    app.include_router(api_router, prefix=settings.API_PREFIX)
    app.include_router(page_router)

    @app.get(f"{settings.API_PREFIX}/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": settings.APP_NAME}

    return app


app = create_application()
