"""External service clients."""

from labelcatalog.infrastructure.integrations.spotify_client import SpotifyClient

__all__ = ["SpotifyClient"]
