"""Application caches."""

from labelcatalog.application.cache.base_cache import BaseCache, CacheEntry, InMemoryCache
from labelcatalog.application.cache.label_cache import LabelCache

__all__ = ["BaseCache", "CacheEntry", "InMemoryCache", "LabelCache"]
