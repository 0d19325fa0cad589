"""Catalog service plugins."""

from labelcatalog.infrastructure.plugins.spotify_plugin import SpotifyCatalogPlugin

__all__ = ["SpotifyCatalogPlugin"]
