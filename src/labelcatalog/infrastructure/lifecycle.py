"""Application lifecycle: build every service at startup, release resources at shutdown.

Startup order:
1. logging (so everything after it is structured)
2. database engine, tables, default labels
3. label cache, catalog plugin, importer
4. classification rule table + engine
5. read chains for the catalog read API

Everything lands on app.state; api/dependencies.py reads it back.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from labelcatalog.application.cache.label_cache import LabelCache
from labelcatalog.application.services.catalog_importer import (
    CatalogImporter,
    ImporterOptions,
)
from labelcatalog.application.services.classification_engine import ClassificationEngine
from labelcatalog.application.services.fallback_reader import FallbackQueryReconciler
from labelcatalog.application.services.track_classification_service import (
    TrackClassificationService,
)
from labelcatalog.config import Settings, get_settings
from labelcatalog.domain.ports import ICatalogService
from labelcatalog.domain.value_objects.taxonomy import load_rule_table
from labelcatalog.infrastructure.integrations.spotify_client import SpotifyClient
from labelcatalog.infrastructure.observability import configure_logging
from labelcatalog.infrastructure.persistence import (
    Database,
    SqlAlchemyLabelStore,
    SqlAlchemyPersistence,
    seed_default_labels,
)
from labelcatalog.infrastructure.persistence.read_strategies import build_read_chains
from labelcatalog.infrastructure.plugins.spotify_plugin import SpotifyCatalogPlugin

logger = logging.getLogger(__name__)


# Listen future me, everything before `yield` runs at STARTUP, everything after at SHUTDOWN.
# A bad rule table file raises ConfigurationError here and the app refuses to start, which
# beats classifying with half a config. app.state.settings / app.state.catalog may be set by
# create_app() before startup (tests inject a fake catalog that way).
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = getattr(app.state, "settings", None) or get_settings()
    app.state.settings = settings

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.log_json_format,
        app_name=settings.app_name,
    )
    logger.info(f"Starting application: {settings.app_name}")

    db = Database(settings)
    spotify_client: SpotifyClient | None = None
    try:
        await db.create_tables()
        async with db.session_scope() as session:
            await seed_default_labels(session)
        app.state.db = db
        logger.info(f"Database initialized: {settings.database.url}")

        label_cache = LabelCache(
            SqlAlchemyLabelStore(db), ttl_seconds=settings.cache.label_ttl_seconds
        )
        persistence = SqlAlchemyPersistence(db)

        catalog: ICatalogService | None = getattr(app.state, "catalog", None)
        if catalog is None:
            spotify_client = SpotifyClient(settings.spotify)
            catalog = SpotifyCatalogPlugin(spotify_client)
            if not settings.spotify.is_configured:
                logger.warning(
                    "Spotify credentials not configured - imports will fail until "
                    "SPOTIFY__CLIENT_ID and SPOTIFY__CLIENT_SECRET are set"
                )
        app.state.catalog = catalog

        engine = ClassificationEngine(load_rule_table(settings.classification.rules_path))
        logger.info(
            f"Classification rules loaded ({len(engine.rules.taxonomies)} taxonomies)",
            extra={"rules_path": str(settings.classification.rules_path or "built-in")},
        )

        app.state.label_cache = label_cache
        app.state.importer = CatalogImporter(
            catalog,
            label_cache,
            persistence,
            options=ImporterOptions.from_settings(settings.importer),
        )
        app.state.classification_engine = engine
        app.state.track_classification_service = TrackClassificationService(
            persistence, engine
        )
        app.state.reconciler = FallbackQueryReconciler(build_read_chains(db))

        yield
    finally:
        logger.info("Shutting down application")
        if spotify_client is not None:
            await spotify_client.close()
        await db.close()
