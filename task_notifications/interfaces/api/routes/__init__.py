from fastapi import FastAPI

from .health import router as health_router
from .notifications import admin_router as notifications_admin_router
from .notifications import router as notifications_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(health_router)
    app.include_router(notifications_router)
    app.include_router(notifications_admin_router)
