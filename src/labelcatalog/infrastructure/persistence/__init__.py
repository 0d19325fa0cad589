"""Persistence layer: SQLAlchemy models, repositories and read strategies."""

from labelcatalog.infrastructure.persistence.database import Database
from labelcatalog.infrastructure.persistence.repositories import (
    DEFAULT_LABELS,
    SqlAlchemyEntityStore,
    SqlAlchemyImportRunRepository,
    SqlAlchemyLabelStore,
    SqlAlchemyPersistence,
    seed_default_labels,
)

__all__ = [
    "DEFAULT_LABELS",
    "Database",
    "SqlAlchemyEntityStore",
    "SqlAlchemyImportRunRepository",
    "SqlAlchemyLabelStore",
    "SqlAlchemyPersistence",
    "seed_default_labels",
]
