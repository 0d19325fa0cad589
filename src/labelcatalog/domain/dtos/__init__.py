"""
Data Transfer Objects between the catalog plugin and the application services.

Hey future me - these DTOs are the ONE place where catalog payload shape gets checked!
The plugin converts raw JSON into them, __post_init__ validates the essentials, and from
then on services never ask "does this dict have a 'label' key?". If a payload is too broken
to build a DTO, the plugin raises ValidationError right there at the boundary.

Flow: Catalog API Response -> DTO (validated) -> CatalogImporter -> EntityResolver -> DB row
"""

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from labelcatalog.domain.entities import AudioFeatures
from labelcatalog.domain.exceptions import ValidationError


# Hey future me - ArtistDTO comes in two flavours: the slim "ref" embedded in albums/tracks
# (id + name only) and the full detail from get_artist (images, genres, popularity).
# is_detailed tells the two apart so the resolver doesn't wipe genres with a ref's empty list.
@dataclass
class ArtistDTO:
    """Artist as reported by the catalog service."""

    external_id: str
    name: str
    image_url: str | None = None
    image_urls: list[str] = field(default_factory=list)
    genres: list[str] = field(default_factory=list)
    popularity: int | None = None
    followers: int | None = None
    external_url: str | None = None
    is_detailed: bool = False

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.external_id or not self.external_id.strip():
            raise ValidationError("Artist external id cannot be empty")
        if not self.name or not self.name.strip():
            raise ValidationError("Artist name cannot be empty")

    def to_attributes(self) -> dict[str, Any]:
        """Attribute record for EntityResolver.upsert()."""
        attributes: dict[str, Any] = {
            "name": self.name,
            "external_url": self.external_url,
        }
        # Refs carry no enrichment; only detail payloads may overwrite it.
        if self.is_detailed:
            attributes.update(
                {
                    "image_url": self.image_url,
                    "image_urls": list(self.image_urls),
                    "genres": list(self.genres),
                    "popularity": self.popularity,
                    "follower_count": self.followers,
                }
            )
        return attributes


@dataclass
class TrackDTO:
    """Track as reported inside a release detail."""

    external_id: str
    title: str
    duration_ms: int = 0
    track_number: int | None = None
    disc_number: int = 1
    explicit: bool = False
    preview_url: str | None = None
    external_url: str | None = None
    artists: list[ArtistDTO] = field(default_factory=list)
    audio_features: AudioFeatures | None = None

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.external_id or not self.external_id.strip():
            raise ValidationError("Track external id cannot be empty")
        if not self.title or not self.title.strip():
            raise ValidationError("Track title cannot be empty")
        if self.duration_ms < 0:
            raise ValidationError("Duration cannot be negative")

    def to_attributes(self) -> dict[str, Any]:
        attributes: dict[str, Any] = {
            "title": self.title,
            "duration_ms": self.duration_ms,
            "track_number": self.track_number,
            "disc_number": self.disc_number,
            "explicit": self.explicit,
            "preview_url": self.preview_url,
            "external_url": self.external_url,
        }
        if self.audio_features is not None and not self.audio_features.is_empty():
            attributes["audio_features"] = self.audio_features.to_dict()
        return attributes


# Yo, ReleaseDTO is used for BOTH search hits (tracks empty, label often None because
# Spotify's simplified album object has no label) and full detail from get_album.
# has_detail is flipped by the plugin when it built this from the full album endpoint.
@dataclass
class ReleaseDTO:
    """Release (album) as reported by the catalog service."""

    external_id: str
    title: str
    label: str | None = None
    release_date: str | None = None
    release_type: str | None = None
    total_tracks: int = 0
    artwork_url: str | None = None
    external_url: str | None = None
    artists: list[ArtistDTO] = field(default_factory=list)
    tracks: list[TrackDTO] = field(default_factory=list)
    has_detail: bool = False

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.external_id or not self.external_id.strip():
            raise ValidationError("Release external id cannot be empty")
        if not self.title or not self.title.strip():
            raise ValidationError("Release title cannot be empty")
        if self.total_tracks < 0:
            raise ValidationError("total_tracks cannot be negative")

    def contributing_artists(self) -> list[ArtistDTO]:
        """Release artists then track artists, unique by external id, order kept."""
        seen: set[str] = set()
        result: list[ArtistDTO] = []
        for artist in [*self.artists, *(a for t in self.tracks for a in t.artists)]:
            if artist.external_id not in seen:
                seen.add(artist.external_id)
                result.append(artist)
        return result

    def to_attributes(self, label_id: str | None = None) -> dict[str, Any]:
        attributes: dict[str, Any] = {
            "title": self.title,
            "release_date": self.release_date,
            "release_type": self.release_type,
            "total_tracks": self.total_tracks or len(self.tracks),
            "artwork_url": self.artwork_url,
            "external_url": self.external_url,
        }
        if label_id is not None:
            attributes["label_id"] = label_id
        return attributes


# Hey future me - PaginatedResponse is the generic wrapper for paged search results.
# next_offset None means "no more pages" - the importer also has its own safety cap.
T = TypeVar("T")


@dataclass
class PaginatedResponse(Generic[T]):
    """
    Generic wrapper for paginated responses.

    Type parameter T is the item type (ReleaseDTO, ArtistDTO, ...)
    """

    items: list[T]
    total: int
    offset: int = 0
    limit: int = 50
    next_offset: int | None = None

    @property
    def has_next(self) -> bool:
        """Check if there are more pages."""
        return self.next_offset is not None


# Export all DTOs
__all__ = [
    "ArtistDTO",
    "TrackDTO",
    "ReleaseDTO",
    "PaginatedResponse",
]
