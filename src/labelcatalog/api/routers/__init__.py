"""API router initialization."""

# Hey future me, this is the MAIN API router aggregator. It's mounted at /api in main.py,
# so the prefixes below become /api/imports, /api/catalog, ... The health endpoint has no
# prefix of its own and ends up at /api/health.

from fastapi import APIRouter

from labelcatalog.api.routers import catalog, classification, health, imports, labels

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(labels.router, prefix="/labels", tags=["Labels"])
api_router.include_router(imports.router, prefix="/imports", tags=["Imports"])
api_router.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
api_router.include_router(
    classification.router, prefix="/classification", tags=["Classification"]
)

__all__ = ["api_router", "catalog", "classification", "health", "imports", "labels"]
