"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from governance.api.routes import auth, company, health, proposals


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
    api_router.include_router(company.router, tags=["company"])
    api_router.include_router(proposals.router, tags=["proposals"])

    application.include_router(api_router)


__all__ = ["register_routes"]
