"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import accounts, auth, health, permissions

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(permissions.router, prefix="/permissions", tags=["permissions"])
router.include_router(accounts.router, prefix="/accounts", tags=["accounts"])
