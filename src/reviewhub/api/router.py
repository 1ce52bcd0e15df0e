"""Master API router mounted at /api/v1."""

from fastapi import APIRouter

from reviewhub.api.routes import activity, health, nominations, notifications

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(health.router, tags=["Health"])
api_router.include_router(nominations.router)
api_router.include_router(activity.router)
api_router.include_router(notifications.router)
