"""Endpoints about the signed-in user."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.v1.dependencies import get_auth_service, get_current_user_id
from app.schemas.auth import AuthMethods
from app.schemas.user import UserResponse
from app.services.auth_service import AuthService
from app.services.exceptions import StorageError, UserNotFoundError

router = APIRouter()


@router.get(
    "/auth-methods",
    response_model=AuthMethods,
    summary="Get sign-in methods",
    description="Whether a password is set and which OAuth providers are linked.",
)
def get_auth_methods(
    user_id: UUID = Depends(get_current_user_id),
    auth_service: AuthService = Depends(get_auth_service),
) -> AuthMethods:
    """Get the current user's sign-in methods."""
    try:
        return auth_service.get_auth_methods(user_id)
    except UserNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StorageError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user",
    description="Get the stored record of the signed-in user.",
)
def get_me(
    user_id: UUID = Depends(get_current_user_id),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Get current user information."""
    user = auth_service.store.get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user
