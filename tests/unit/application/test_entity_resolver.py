"""Tests for EntityResolver."""

from typing import Any

import pytest

from labelcatalog.application.services.entity_resolver import EntityResolver
from labelcatalog.domain.entities import EntityKind, Track
from labelcatalog.domain.exceptions import PersistenceError, ValidationError
from labelcatalog.domain.ports import IEntityStore


class InMemoryEntityStore(IEntityStore):
    """Dict-backed store; rows keyed by (kind, external_id)."""

    def __init__(self) -> None:
        self.rows: dict[tuple[EntityKind, str], dict[str, Any]] = {}
        self.links: dict[str, set[str]] = {}
        self.create_calls = 0
        self.update_calls: list[dict[str, Any]] = []

    async def find_by_external_id(
        self, kind: EntityKind, external_id: str
    ) -> dict[str, Any] | None:
        row = self.rows.get((kind, external_id))
        return dict(row) if row else None

    async def create(
        self, kind: EntityKind, entity_id: str, external_id: str, attributes: dict[str, Any]
    ) -> None:
        if (kind, external_id) in self.rows:
            raise PersistenceError("duplicate", kind.value, external_id)
        self.create_calls += 1
        self.rows[(kind, external_id)] = {"id": entity_id, "external_id": external_id, **attributes}

    async def update(self, kind: EntityKind, entity_id: str, attributes: dict[str, Any]) -> None:
        self.update_calls.append(attributes)
        for row in self.rows.values():
            if row["id"] == entity_id:
                row.update(attributes)

    async def link_artists(
        self, kind: EntityKind, entity_id: str, artist_ids: list[str]
    ) -> int:
        existing = self.links.setdefault(entity_id, set())
        new = set(artist_ids) - existing
        existing |= new
        return len(new)

    async def list_unclassified_tracks(self, limit: int = 100) -> list[tuple[Track, list[str]]]:
        return []

    async def set_track_classification(
        self, track_id: str, taxonomy: str, confidence: float
    ) -> None:
        pass


@pytest.fixture
def store() -> InMemoryEntityStore:
    return InMemoryEntityStore()


@pytest.fixture
def resolver(store: InMemoryEntityStore) -> EntityResolver:
    return EntityResolver(store)


class TestResolve:
    """Create-or-update semantics."""

    async def test_creates_then_reuses_id(
        self, resolver: EntityResolver, store: InMemoryEntityStore
    ) -> None:
        """Test that a second upsert of the same external id returns the same internal id."""
        first = await resolver.resolve("artist", "a1", {"name": "Artist"})
        second = await resolver.resolve("artist", "a1", {"name": "Artist"})

        assert first.created is True
        assert second.created is False
        assert first.id == second.id
        assert store.create_calls == 1
        # Nothing changed, so no update either.
        assert store.update_calls == []

    async def test_updates_only_mutable_fields(
        self, resolver: EntityResolver, store: InMemoryEntityStore
    ) -> None:
        entity_id = await resolver.upsert(EntityKind.ARTIST, "a1", {"name": "Old"})

        await resolver.upsert(
            EntityKind.ARTIST, "a1", {"name": "New", "id": "hijack", "external_id": "x"}
        )

        row = store.rows[(EntityKind.ARTIST, "a1")]
        assert row["name"] == "New"
        assert row["id"] == entity_id
        assert row["external_id"] == "a1"

    async def test_relationship_never_reassigned(
        self, resolver: EntityResolver, store: InMemoryEntityStore
    ) -> None:
        """Test that label_id is filled once and then left alone."""
        await resolver.upsert("release", "r1", {"title": "Album", "label_id": None})
        await resolver.upsert("release", "r1", {"title": "Album", "label_id": "buildit-tech"})
        await resolver.upsert("release", "r1", {"title": "Album", "label_id": "buildit-deep"})

        assert store.rows[(EntityKind.RELEASE, "r1")]["label_id"] == "buildit-tech"

    async def test_unknown_attributes_dropped_on_create(
        self, resolver: EntityResolver, store: InMemoryEntityStore
    ) -> None:
        await resolver.upsert("track", "t1", {"title": "Song", "release_id": "r", "taxonomy": "X"})

        assert "taxonomy" not in store.rows[(EntityKind.TRACK, "t1")]

    async def test_external_id_is_trimmed(
        self, resolver: EntityResolver, store: InMemoryEntityStore
    ) -> None:
        first = await resolver.upsert("artist", " a1 ", {"name": "Artist"})
        second = await resolver.upsert("artist", "a1", {"name": "Artist"})

        assert first == second


class TestResolveValidation:
    async def test_empty_external_id(self, resolver: EntityResolver) -> None:
        with pytest.raises(ValidationError):
            await resolver.upsert("artist", "  ", {"name": "Artist"})

    async def test_unknown_kind(self, resolver: EntityResolver) -> None:
        with pytest.raises(ValidationError, match="Unknown entity kind"):
            await resolver.upsert("playlist", "p1", {"name": "Mix"})

    async def test_missing_required_field_on_create(self, resolver: EntityResolver) -> None:
        """Test that a track can't be created without its owning release."""
        with pytest.raises(ValidationError, match="release_id"):
            await resolver.upsert("track", "t1", {"title": "Song"})

    async def test_store_errors_propagate(self, store: InMemoryEntityStore) -> None:
        """Test that PersistenceError from the store reaches the caller unchanged."""

        class FailingStore(InMemoryEntityStore):
            async def create(self, *args: Any, **kwargs: Any) -> None:
                raise PersistenceError("constraint", "artist", "a1")

        with pytest.raises(PersistenceError):
            await EntityResolver(FailingStore()).upsert("artist", "a1", {"name": "Artist"})


class TestLinkArtists:
    async def test_link_is_additive(
        self, resolver: EntityResolver, store: InMemoryEntityStore
    ) -> None:
        assert await resolver.link_artists("release", "r", ["a1", "a2"]) == 2
        assert await resolver.link_artists("release", "r", ["a2", "a3"]) == 1
        assert store.links["r"] == {"a1", "a2", "a3"}
