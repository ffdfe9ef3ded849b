"""API routers for the workplace registry backend."""
from fastapi import APIRouter

from . import buildings, functions, health, organizations, regions


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(organizations.router)
    api_router.include_router(regions.router)
    api_router.include_router(buildings.router)
    api_router.include_router(functions.router)
    return api_router
