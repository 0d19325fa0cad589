"""LabelCache - read-through, TTL-bound cache in front of the Label Store.

Hey future me - this replaces the old module-level "labels by id" dict that was filled lazily
and never invalidated. Now the cache is an explicit object with its own store, TTL and an
invalidate() method, and it IS an ILabelStore, so the importer doesn't know it's talking to
a cache at all.

NotFound results are never cached: a label seeded after a miss must become visible on the
next lookup, not after the TTL.
"""

import logging
from collections.abc import Callable

from labelcatalog.application.cache.base_cache import InMemoryCache
from labelcatalog.domain.entities import Label
from labelcatalog.domain.ports import ILabelStore

logger = logging.getLogger(__name__)

_ALL_LABELS_KEY = "__all__"


class LabelCache(ILabelStore):
    """Caches get_label() per id and list_labels() as a whole."""

    def __init__(
        self,
        store: ILabelStore,
        ttl_seconds: float = 300,
        cache: InMemoryCache[str, Label | list[Label]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._store = store
        self.ttl_seconds = ttl_seconds
        if cache is None:
            cache = (
                InMemoryCache(default_ttl_seconds=ttl_seconds, clock=clock)
                if clock is not None
                else InMemoryCache(default_ttl_seconds=ttl_seconds)
            )
        self._cache = cache
        self.hits = 0
        self.misses = 0

    async def get_label(self, label_id: str) -> Label:
        cached = await self._cache.get(label_id)
        if isinstance(cached, Label):
            self.hits += 1
            return cached
        self.misses += 1
        label = await self._store.get_label(label_id)
        await self._cache.set(label_id, label, self.ttl_seconds)
        return label

    async def list_labels(self) -> list[Label]:
        cached = await self._cache.get(_ALL_LABELS_KEY)
        if isinstance(cached, list):
            self.hits += 1
            return list(cached)
        self.misses += 1
        labels = await self._store.list_labels()
        await self._cache.set(_ALL_LABELS_KEY, list(labels), self.ttl_seconds)
        for label in labels:
            await self._cache.set(label.id, label, self.ttl_seconds)
        return labels

    async def invalidate(self, label_id: str | None = None) -> None:
        """Drop one label (and the list) or, with no id, everything."""
        if label_id is None:
            await self._cache.clear()
            logger.info("Label cache cleared")
            return
        await self._cache.delete(label_id)
        await self._cache.delete(_ALL_LABELS_KEY)
        logger.info(f"Label cache invalidated for {label_id}")

    def get_stats(self) -> dict[str, int]:
        stats = self._cache.get_stats()
        return {**stats, "hits": self.hits, "misses": self.misses}
