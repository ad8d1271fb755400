"""API v1 routes."""

from fastapi import APIRouter

from empdash.api.v1 import account, auth, health, maintenance, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(account.router, prefix="/account", tags=["account"])
router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
