"""Dependency injection for API endpoints.

Everything here is built ONCE in the lifespan (see infrastructure/lifecycle.py) and
hung on app.state. These getters only fetch it back out.
"""

from typing import Any, cast

from fastapi import HTTPException, Request

from labelcatalog.application.cache.label_cache import LabelCache
from labelcatalog.application.services.catalog_importer import CatalogImporter
from labelcatalog.application.services.classification_engine import ClassificationEngine
from labelcatalog.application.services.fallback_reader import FallbackQueryReconciler
from labelcatalog.application.services.track_classification_service import (
    TrackClassificationService,
)


# Hey future me, a missing attribute means the lifespan never ran or crashed half-way.
# That's "server not ready" (503), not a bug in the request.
def _from_state(request: Request, name: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialized")
    return value


def get_importer(request: Request) -> CatalogImporter:
    return cast(CatalogImporter, _from_state(request, "importer"))


def get_reconciler(request: Request) -> FallbackQueryReconciler:
    return cast(FallbackQueryReconciler, _from_state(request, "reconciler"))


def get_classification_engine(request: Request) -> ClassificationEngine:
    return cast(ClassificationEngine, _from_state(request, "classification_engine"))


def get_track_classification_service(request: Request) -> TrackClassificationService:
    return cast(
        TrackClassificationService, _from_state(request, "track_classification_service")
    )


def get_label_cache(request: Request) -> LabelCache:
    return cast(LabelCache, _from_state(request, "label_cache"))
