"""Shared fixtures.

Hey future me - FakeCatalog is the in-memory ICatalogService every importer/API test uses.
Register search hits per query and release details per external id; anything you don't
register behaves like Spotify would (empty search page, 404 on detail).
"""

from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select

from labelcatalog.application.services.catalog_importer import (
    CatalogImporter,
    ImporterOptions,
    search_query,
)
from labelcatalog.config.settings import DatabaseSettings, Settings
from labelcatalog.domain.dtos import ArtistDTO, PaginatedResponse, ReleaseDTO, TrackDTO
from labelcatalog.domain.entities import AudioFeatures
from labelcatalog.domain.exceptions import EntityNotFoundException
from labelcatalog.domain.ports import ICatalogService
from labelcatalog.infrastructure.persistence import (
    Database,
    SqlAlchemyLabelStore,
    SqlAlchemyPersistence,
    seed_default_labels,
)


class FakeCatalog(ICatalogService):
    """Scriptable catalog service."""

    def __init__(self) -> None:
        self.search_hits: dict[str, list[ReleaseDTO]] = {}
        self.search_errors: dict[str, Exception] = {}
        self.releases: dict[str, ReleaseDTO] = {}
        self.release_errors: dict[str, Exception] = {}
        self.artists: dict[str, ArtistDTO] = {}
        self.artist_errors: dict[str, Exception] = {}
        self.audio_features_error: Exception | None = None
        self.audio_features: dict[str, AudioFeatures] = {}
        self.search_calls: list[tuple[str, int, int]] = []
        self.release_calls: list[str] = []

    def add_release(self, release: ReleaseDTO, query: str | None = None) -> None:
        """Register full detail and (optionally) a search hit for it."""
        self.releases[release.external_id] = release
        if query is not None:
            hit = ReleaseDTO(
                external_id=release.external_id,
                title=release.title,
                artists=list(release.artists),
            )
            self.search_hits.setdefault(query, []).append(hit)

    async def search_releases(
        self, query: str, limit: int = 50, offset: int = 0
    ) -> PaginatedResponse[ReleaseDTO]:
        self.search_calls.append((query, limit, offset))
        if query in self.search_errors:
            raise self.search_errors[query]
        hits = self.search_hits.get(query, [])
        page = hits[offset : offset + limit]
        next_offset = offset + limit if offset + limit < len(hits) else None
        return PaginatedResponse(
            items=page, total=len(hits), offset=offset, limit=limit, next_offset=next_offset
        )

    async def get_release(self, external_id: str) -> ReleaseDTO:
        self.release_calls.append(external_id)
        if external_id in self.release_errors:
            raise self.release_errors[external_id]
        if external_id not in self.releases:
            raise EntityNotFoundException("Spotify resource", f"/albums/{external_id}")
        return self.releases[external_id]

    async def get_artist(self, external_id: str) -> ArtistDTO:
        if external_id in self.artist_errors:
            raise self.artist_errors[external_id]
        if external_id not in self.artists:
            raise EntityNotFoundException("Spotify resource", f"/artists/{external_id}")
        return self.artists[external_id]

    async def get_audio_features(
        self, track_external_ids: list[str]
    ) -> dict[str, AudioFeatures]:
        if self.audio_features_error is not None:
            raise self.audio_features_error
        return {
            tid: self.audio_features[tid]
            for tid in track_external_ids
            if tid in self.audio_features
        }


def build_release(
    external_id: str,
    label: str | None = "Build It Tech",
    track_count: int = 2,
    artist_id: str | None = None,
    title: str | None = None,
) -> ReleaseDTO:
    """Release detail with one artist credited on the release and every track."""
    artist = ArtistDTO(
        external_id=artist_id or f"artist-{external_id}",
        name=f"Artist {artist_id or external_id}",
    )
    tracks = [
        TrackDTO(
            external_id=f"{external_id}-t{n}",
            title=f"Track {n}",
            duration_ms=200_000 + n,
            track_number=n,
            artists=[artist],
        )
        for n in range(1, track_count + 1)
    ]
    return ReleaseDTO(
        external_id=external_id,
        title=title or f"Release {external_id}",
        label=label,
        release_date="2024-01-01",
        release_type="album",
        total_tracks=track_count,
        artists=[artist],
        tracks=tracks,
        has_detail=True,
    )


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def make_release() -> Callable[..., ReleaseDTO]:
    return build_release


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}"),
    )


@pytest.fixture
async def database(test_settings: Settings) -> AsyncIterator[Database]:
    """Real SQLite database with tables created and default labels seeded."""
    db = Database(test_settings)
    await db.create_tables()
    async with db.session_scope() as session:
        await seed_default_labels(session)
    yield db
    await db.close()


@pytest.fixture
def seed_catalog(
    database: Database, fake_catalog: FakeCatalog
) -> Callable[..., Any]:
    """Async helper: import releases for a label through the real importer."""

    async def _seed(
        label_id: str,
        *releases: ReleaseDTO,
        options: ImporterOptions | None = None,
    ) -> dict[str, Any]:
        label = await SqlAlchemyLabelStore(database).get_label(label_id)
        for release in releases:
            fake_catalog.add_release(release, query=search_query(label.display_name))
        importer = CatalogImporter(
            catalog=fake_catalog,
            labels=SqlAlchemyLabelStore(database),
            persistence=SqlAlchemyPersistence(database),
            options=options,
            sleep=AsyncMock(),
        )
        return await importer.run(label_id)

    return _seed


@pytest.fixture
def count_rows(database: Database) -> Callable[[Any], Any]:
    """Async helper: await count_rows(Model) -> number of rows."""

    async def _count(model: Any) -> int:
        stmt = select(func.count()).select_from(model)
        async with database.session_scope() as session:
            return int((await session.execute(stmt)).scalar_one())

    return _count
