"""Register all route modules on the FastAPI app."""

from fastapi import FastAPI

from .clusters import router as clusters_router
from .content import router as content_router
from .root import router as root_router
from .users import router as users_router


def register_routes(app: FastAPI) -> None:
    """Attach all API routers to the app."""
    app.include_router(root_router)
    app.include_router(users_router, prefix="/api/users", tags=["users"])
    app.include_router(content_router, prefix="/api/content", tags=["content"])
    app.include_router(clusters_router, prefix="/api/clusters", tags=["clusters"])
