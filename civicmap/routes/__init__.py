"""API route modules for FastAPI endpoints."""

from civicmap.routes.issues import router as issues_router
from civicmap.routes.health import router as health_router

__all__ = ["issues_router", "health_router"]
