"""HTTP API for labelcatalog.

Structure:
- routers/: endpoints, aggregated into `api_router` and mounted at /api
- schemas/: Pydantic request/response models
- dependencies.py: app.state getters for the services built in the lifespan
- exception_handlers.py: domain exception -> HTTP status mapping
"""

from labelcatalog.api.routers import api_router

__all__ = ["api_router"]
