"""API router package."""

from fastapi import APIRouter

from boardhub.api.v1 import (
    auth,
    boards,
    comments,
    health,
    members,
    moves,
    notifications,
    profile,
    tasks,
    websocket,
    workspaces,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(profile.router, prefix="/profile", tags=["Profile"])
router.include_router(workspaces.home_router, tags=["Workspaces"])
router.include_router(workspaces.router, prefix="/workspaces", tags=["Workspaces"])
router.include_router(moves.router, prefix="/boards", tags=["Moves"])
router.include_router(boards.router, prefix="/boards", tags=["Boards"])
router.include_router(tasks.router, prefix="/boards", tags=["Tasks"])
router.include_router(comments.router, prefix="/boards", tags=["Comments"])
router.include_router(members.router, prefix="/boards", tags=["Members"])
router.include_router(members.invitations_router, prefix="/invitations", tags=["Invitations"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(websocket.router, tags=["WebSocket"])
