"""API routes package."""

from controller.routes.admin_routes import router as admin_router
from controller.routes.file_routes import router as file_router
from controller.routes.week_routes import router as week_router

__all__ = ["admin_router", "file_router", "week_router"]
