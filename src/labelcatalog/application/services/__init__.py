"""Application services."""

from labelcatalog.application.services.catalog_importer import (
    CatalogImporter,
    ImporterOptions,
)
from labelcatalog.application.services.classification_engine import ClassificationEngine
from labelcatalog.application.services.entity_resolver import EntityResolver, ResolvedEntity
from labelcatalog.application.services.fallback_reader import (
    FallbackQueryReconciler,
    FallbackResult,
    ReadChain,
    ReadStrategy,
)
from labelcatalog.application.services.track_classification_service import (
    ClassificationBatchResult,
    TrackClassificationService,
)

__all__ = [
    "CatalogImporter",
    "ClassificationBatchResult",
    "ClassificationEngine",
    "EntityResolver",
    "FallbackQueryReconciler",
    "FallbackResult",
    "ImporterOptions",
    "ReadChain",
    "ReadStrategy",
    "ResolvedEntity",
    "TrackClassificationService",
]
