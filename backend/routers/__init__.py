"""API routers."""
from fastapi import APIRouter

from backend.routers import auth, health, ideas, jars, notifications, user, vote

router = APIRouter(prefix="/api")

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(jars.router, prefix="/jars", tags=["jars"])
router.include_router(ideas.jar_ideas_router, prefix="/jars", tags=["ideas"])
router.include_router(vote.router, prefix="/jars", tags=["vote"])
router.include_router(ideas.router, prefix="/ideas", tags=["ideas"])
router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
router.include_router(user.router, prefix="/user", tags=["user"])

__all__ = [
    "router",
    "auth",
    "health",
    "ideas",
    "jars",
    "notifications",
    "user",
    "vote",
]
