"""FastAPI application factory.

Run with:
    uvicorn labelcatalog.main:app
"""

from fastapi import FastAPI

from labelcatalog import __version__
from labelcatalog.api.exception_handlers import register_exception_handlers
from labelcatalog.api.routers import api_router
from labelcatalog.config import Settings
from labelcatalog.domain.ports import ICatalogService
from labelcatalog.infrastructure.lifecycle import lifespan
from labelcatalog.infrastructure.observability.middleware import RequestLoggingMiddleware


def create_app(
    settings: Settings | None = None, catalog: ICatalogService | None = None
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use instead of the environment (tests)
        catalog: Catalog service to use instead of Spotify (tests)
    """
    app = FastAPI(
        title="labelcatalog",
        description="Record-label catalog sync and classification",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.catalog = catalog

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
