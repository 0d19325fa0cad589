"""Tests for TrackClassificationService over a real SQLite database."""

from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import select

from conftest import FakeCatalog
from labelcatalog.application.services import (
    ClassificationEngine,
    ImporterOptions,
    TrackClassificationService,
)
from labelcatalog.domain.dtos import ArtistDTO, ReleaseDTO
from labelcatalog.domain.entities import AudioFeatures
from labelcatalog.infrastructure.persistence import Database, SqlAlchemyPersistence
from labelcatalog.infrastructure.persistence.models import TrackModel

DEEP_FEATURES = AudioFeatures(
    energy=0.5, tempo=120.0, instrumentalness=0.8, acousticness=0.1, valence=0.3
)


@pytest.fixture
async def imported(
    seed_catalog: Callable[..., Any],
    fake_catalog: FakeCatalog,
    make_release: Callable[..., ReleaseDTO],
) -> None:
    """One deep release: r1-t1 has features, r1-t2 has none."""
    fake_catalog.artists["artist-r1"] = ArtistDTO(
        external_id="artist-r1",
        name="Artist r1",
        genres=["deep-house", "minimal"],
        is_detailed=True,
    )
    fake_catalog.audio_features["r1-t1"] = DEEP_FEATURES
    await seed_catalog(
        "buildit-deep",
        make_release("r1", label="Build It Deep"),
        options=ImporterOptions(fetch_audio_features=True),
    )


@pytest.fixture
def service(database: Database) -> TrackClassificationService:
    return TrackClassificationService(SqlAlchemyPersistence(database), ClassificationEngine())


@pytest.mark.usefixtures("imported")
class TestClassifyUntagged:
    async def test_classifies_tracks_with_features(
        self, service: TrackClassificationService, database: Database
    ) -> None:
        """Test that artist genres plus stored features drive the classification."""
        result = await service.classify_untagged()

        assert result.classified == 1
        assert result.by_taxonomy == {"BUILD_IT_DEEP": 1}
        assert result.results[0].confidence == 1.0

        async with database.session_scope() as session:
            tracks = {
                t.external_id: t for t in (await session.execute(select(TrackModel))).scalars()
            }
        assert tracks["r1-t1"].taxonomy == "BUILD_IT_DEEP"
        assert tracks["r1-t1"].classification_confidence == 1.0
        assert tracks["r1-t2"].taxonomy is None

    async def test_already_classified_tracks_skipped(
        self, service: TrackClassificationService
    ) -> None:
        await service.classify_untagged()

        second = await service.classify_untagged()

        assert second.classified == 0
        assert second.to_dict()["results"] == []

    async def test_reimport_keeps_classification(
        self,
        service: TrackClassificationService,
        seed_catalog: Callable[..., Any],
        database: Database,
    ) -> None:
        await service.classify_untagged()

        await seed_catalog("buildit-deep", options=ImporterOptions(fetch_audio_features=True))

        async with database.session_scope() as session:
            track = (
                await session.execute(select(TrackModel).where(TrackModel.external_id == "r1-t1"))
            ).scalar_one()
        assert track.taxonomy == "BUILD_IT_DEEP"
