"""API router aggregation."""

from fastapi import APIRouter

from app.api.v1 import auth, users, pages

api_router = APIRouter()

# Include all endpoint routers
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(users.router, prefix="/user", tags=["User"])

page_router = APIRouter()
page_router.include_router(pages.router, tags=["Pages"])
