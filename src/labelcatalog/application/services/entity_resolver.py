"""EntityResolver - idempotent upsert of catalog rows keyed by external id."""

import logging
from dataclasses import dataclass
from typing import Any

from labelcatalog.domain.entities import EntityKind, new_id
from labelcatalog.domain.exceptions import ValidationError
from labelcatalog.domain.ports import IEntityStore

logger = logging.getLogger(__name__)

# Hey future me, MUTABLE_FIELDS is the whole idempotency contract in one table. On re-import
# only these columns get overwritten. Internal id, external id and relationships (label,
# owning release, artist links) are NEVER touched on an existing row. Classification output
# (taxonomy/confidence) isn't listed either, so a re-import doesn't wipe it.
MUTABLE_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.ARTIST: frozenset(
        {
            "name",
            "image_url",
            "image_urls",
            "genres",
            "popularity",
            "follower_count",
            "external_url",
        }
    ),
    EntityKind.RELEASE: frozenset(
        {
            "title",
            "release_date",
            "release_type",
            "total_tracks",
            "artwork_url",
            "external_url",
        }
    ),
    EntityKind.TRACK: frozenset(
        {
            "title",
            "duration_ms",
            "track_number",
            "disc_number",
            "explicit",
            "preview_url",
            "external_url",
            "audio_features",
        }
    ),
}

# Relationship columns: set on create, or filled in when still empty, never reassigned.
RELATIONSHIP_FIELDS: dict[EntityKind, frozenset[str]] = {
    EntityKind.ARTIST: frozenset(),
    EntityKind.RELEASE: frozenset({"label_id"}),
    EntityKind.TRACK: frozenset({"release_id"}),
}

REQUIRED_ON_CREATE: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.ARTIST: ("name",),
    EntityKind.RELEASE: ("title",),
    EntityKind.TRACK: ("title", "release_id"),
}


@dataclass(frozen=True)
class ResolvedEntity:
    id: str
    created: bool


class EntityResolver:
    """Create-or-update by external id inside the caller's transaction.

    The resolver never opens or commits a transaction. Store errors
    (PersistenceError on constraint violations) propagate unchanged; the caller
    decides what the enclosing unit of work does about them.
    """

    def __init__(self, store: IEntityStore) -> None:
        self._store = store

    async def upsert(
        self, kind: EntityKind | str, external_id: str, attributes: dict[str, Any]
    ) -> str:
        """Upsert one row and return its internal id."""
        return (await self.resolve(kind, external_id, attributes)).id

    async def resolve(
        self, kind: EntityKind | str, external_id: str, attributes: dict[str, Any]
    ) -> ResolvedEntity:
        """Upsert one row and report whether it was created."""
        kind = self._kind(kind)
        if not isinstance(external_id, str) or not external_id.strip():
            raise ValidationError(f"{kind.value} external id must not be empty")
        external_id = external_id.strip()

        existing = await self._store.find_by_external_id(kind, external_id)
        if existing is None:
            missing = [f for f in REQUIRED_ON_CREATE[kind] if not attributes.get(f)]
            if missing:
                raise ValidationError(
                    f"Cannot create {kind.value} {external_id}: missing {', '.join(missing)}"
                )
            entity_id = new_id()
            allowed = MUTABLE_FIELDS[kind] | RELATIONSHIP_FIELDS[kind]
            await self._store.create(
                kind,
                entity_id,
                external_id,
                {k: v for k, v in attributes.items() if k in allowed},
            )
            logger.debug(f"Created {kind.value} {external_id} as {entity_id}")
            return ResolvedEntity(id=entity_id, created=True)

        entity_id = str(existing["id"])
        changes = {
            k: v
            for k, v in attributes.items()
            if k in MUTABLE_FIELDS[kind] and existing.get(k) != v
        }
        # Fill a relationship only when the existing row has none yet.
        for name in RELATIONSHIP_FIELDS[kind]:
            if attributes.get(name) is not None and existing.get(name) is None:
                changes[name] = attributes[name]

        if changes:
            await self._store.update(kind, entity_id, changes)
            logger.debug(
                f"Updated {kind.value} {external_id}",
                extra={"fields": sorted(changes)},
            )
        return ResolvedEntity(id=entity_id, created=False)

    async def link_artists(
        self, kind: EntityKind | str, entity_id: str, artist_ids: list[str]
    ) -> int:
        """Attach artists to a release/track; existing links are kept."""
        return await self._store.link_artists(self._kind(kind), entity_id, artist_ids)

    @staticmethod
    def _kind(kind: EntityKind | str) -> EntityKind:
        try:
            return EntityKind(kind)
        except ValueError as e:
            raise ValidationError(f"Unknown entity kind {kind!r}") from e
