"""API router package."""

from fastapi import APIRouter

from taskme.api.v1 import (
    auth,
    health,
    messages,
    notifications,
    push,
    sharing,
    tasks,
    users,
    websocket,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(sharing.router, prefix="/tasks", tags=["Sharing"])
router.include_router(messages.router, tags=["Messages"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(push.router, prefix="/push", tags=["Push"])
router.include_router(websocket.router, tags=["WebSocket"])
