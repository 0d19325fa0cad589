"""Tests for the SQL read strategies and the chains built from them."""

from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import select

from labelcatalog.application.services.fallback_reader import FallbackQueryReconciler
from labelcatalog.domain.dtos import ReleaseDTO
from labelcatalog.domain.exceptions import EntityNotFoundException, SourceExhausted
from labelcatalog.infrastructure.persistence import Database
from labelcatalog.infrastructure.persistence.models import (
    ArtistModel,
    ReleaseModel,
    TrackModel,
)
from labelcatalog.infrastructure.persistence.read_strategies import (
    PLACEHOLDER_IMAGE_URL,
    VARIOUS_ARTISTS,
    SqlReadStrategies,
    build_read_chains,
)


@pytest.fixture
async def seeded(
    seed_catalog: Callable[..., Any], make_release: Callable[..., ReleaseDTO]
) -> None:
    await seed_catalog("buildit-tech", make_release("r1"), make_release("r2", track_count=1))


async def _id_of(database: Database, model: Any, external_id: str) -> str:
    async with database.session_scope() as session:
        stmt = select(model.id).where(model.external_id == external_id)
        return str((await session.execute(stmt)).scalar_one())


@pytest.fixture
def reconciler(database: Database) -> FallbackQueryReconciler:
    return FallbackQueryReconciler(build_read_chains(database))


@pytest.mark.usefixtures("seeded")
class TestListChains:
    """releases/artists/tracks chains."""

    async def test_releases_joined(self, reconciler: FallbackQueryReconciler) -> None:
        result = await reconciler.fetch("releases", "buildit-tech")

        assert result.source == "joined"
        rows = {row["external_id"]: row for row in result.data}
        assert rows["r1"]["track_count"] == 2
        assert rows["r2"]["track_count"] == 1
        assert rows["r1"]["artist_names"] == "Artist r1"
        assert rows["r1"]["artwork_url"] == PLACEHOLDER_IMAGE_URL

    async def test_releases_fall_back_to_simplified(
        self, database: Database, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a broken joined query is served by the plain one."""

        async def broken(self: SqlReadStrategies, label_id: str) -> list[dict[str, Any]]:
            raise RuntimeError("no such column: releases.track_count")

        monkeypatch.setattr(SqlReadStrategies, "releases_joined", broken)
        reconciler = FallbackQueryReconciler(build_read_chains(database))

        result = await reconciler.fetch("releases", "buildit-tech")

        assert result.source == "simplified"
        assert sorted(row["external_id"] for row in result.data) == ["r1", "r2"]
        assert "track_count" not in result.data[0]
        assert result.meta["attempts"][0]["outcome"] == "error"

    async def test_unknown_label_gets_placeholder_artist(
        self, reconciler: FallbackQueryReconciler
    ) -> None:
        result = await reconciler.fetch("artists", "buildit-deep")

        assert result.source == "placeholder"
        assert result.data[0]["name"] == VARIOUS_ARTISTS
        assert result.data[0]["is_placeholder"] is True

    async def test_artists_for_label(self, reconciler: FallbackQueryReconciler) -> None:
        result = await reconciler.fetch("artists", "buildit-tech")

        assert result.source == "joined"
        assert {row["name"]: row["release_count"] for row in result.data} == {
            "Artist r1": 1,
            "Artist r2": 1,
        }

    async def test_tracks_in_order(
        self, reconciler: FallbackQueryReconciler, database: Database
    ) -> None:
        release_id = await _id_of(database, ReleaseModel, "r1")

        result = await reconciler.fetch("tracks", release_id)

        assert [row["external_id"] for row in result.data] == ["r1-t1", "r1-t2"]
        assert result.data[0]["artist_names"] == "Artist r1"

    async def test_tracks_of_unknown_release_is_empty_placeholder(
        self, reconciler: FallbackQueryReconciler
    ) -> None:
        result = await reconciler.fetch("tracks", "nope")

        assert result.data == []
        assert result.source == "placeholder"


@pytest.mark.usefixtures("seeded")
class TestSingleEntityChains:
    async def test_release_with_label_name(
        self, reconciler: FallbackQueryReconciler, database: Database
    ) -> None:
        release_id = await _id_of(database, ReleaseModel, "r1")

        result = await reconciler.fetch("release", release_id)

        assert result.source == "joined"
        assert result.data["label_name"] == "Build It Tech"
        assert result.data["track_count"] == 2

    async def test_track_with_release_title(
        self, reconciler: FallbackQueryReconciler, database: Database
    ) -> None:
        track_id = await _id_of(database, TrackModel, "r2-t1")

        result = await reconciler.fetch("track", track_id)

        assert result.data["release_title"] == "Release r2"
        assert result.data["audio_features"]["energy"] is None

    async def test_artist_release_count(
        self, reconciler: FallbackQueryReconciler, database: Database
    ) -> None:
        artist_id = await _id_of(database, ArtistModel, "artist-r1")

        result = await reconciler.fetch("artist", artist_id)

        assert result.data["release_count"] == 1

    async def test_missing_release_is_not_found(
        self, reconciler: FallbackQueryReconciler
    ) -> None:
        with pytest.raises(EntityNotFoundException):
            await reconciler.fetch("release", "does-not-exist")

    async def test_every_strategy_broken(
        self, database: Database, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def broken(self: SqlReadStrategies, key: str) -> dict[str, Any] | None:
            raise RuntimeError("database is locked")

        monkeypatch.setattr(SqlReadStrategies, "release_joined", broken)
        monkeypatch.setattr(SqlReadStrategies, "release_simple", broken)
        reconciler = FallbackQueryReconciler(build_read_chains(database))

        with pytest.raises(SourceExhausted):
            await reconciler.fetch("release", "r1")
