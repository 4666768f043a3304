"""HTTP surface: request schemas, dependencies and routes."""

from app.api.routes import admin_router, router

__all__ = ["router", "admin_router"]
