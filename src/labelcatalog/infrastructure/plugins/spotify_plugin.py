"""
Spotify catalog plugin: ICatalogService on top of SpotifyClient.

Hey future me - this is the ONLY place that knows Spotify's JSON shape! The client returns raw
dicts, this plugin turns them into DTOs, and the DTO constructors validate the essentials.
Everything above this layer works with ReleaseDTO/ArtistDTO/TrackDTO and never pokes at dicts.

A broken item inside a search page is dropped with a warning (one bad hit shouldn't kill the
page). A broken DETAIL payload raises ValidationError (missing id/name) or ExternalServiceError
(wrong shapes) - the importer records that release as a per-release error and moves on.
"""

import logging
from typing import Any

from labelcatalog.domain.dtos import ArtistDTO, PaginatedResponse, ReleaseDTO, TrackDTO
from labelcatalog.domain.entities import AudioFeatures
from labelcatalog.domain.exceptions import ExternalServiceError, ValidationError
from labelcatalog.domain.ports import ICatalogService
from labelcatalog.infrastructure.integrations.spotify_client import SpotifyClient

logger = logging.getLogger(__name__)


def _pick_image(images: Any, prefer_index: int = 0) -> str | None:
    """URL of the preferred image, falling back to the first one."""
    if not isinstance(images, list) or not images:
        return None
    chosen = images[prefer_index] if len(images) > prefer_index else images[0]
    return chosen.get("url") if isinstance(chosen, dict) else None


# Yo, a detail payload with the right keys but wrong shapes (a list where an object belongs)
# blows up inside the converters with a plain TypeError/AttributeError. Callers only deal in
# domain exceptions, so those become "Spotify sent garbage" here.
def _malformed(kind: str, external_id: str, error: Exception) -> ExternalServiceError:
    return ExternalServiceError(
        f"Malformed Spotify {kind} payload for {external_id}: {type(error).__name__}: {error}",
        service="spotify",
    )


class SpotifyCatalogPlugin(ICatalogService):
    """Catalog service backed by the Spotify Web API."""

    def __init__(self, client: SpotifyClient) -> None:
        self._client = client

    # -------------------------------------------------------------------------
    # ICatalogService
    # -------------------------------------------------------------------------

    async def search_releases(
        self, query: str, limit: int = 50, offset: int = 0
    ) -> PaginatedResponse[ReleaseDTO]:
        data = await self._client.search(query, types=["album"], limit=limit, offset=offset)
        albums = data.get("albums")
        if not isinstance(albums, dict):
            raise ExternalServiceError(
                f"Spotify search response has no albums section (query={query!r})",
                service="spotify",
            )

        raw_items = albums.get("items") or []
        items: list[ReleaseDTO] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                continue
            try:
                items.append(self._convert_album(raw))
            except (ValidationError, TypeError, AttributeError, ValueError) as e:
                logger.warning(
                    f"Dropping malformed search hit: {type(e).__name__}: {e}",
                    extra={"query": query, "album_id": raw.get("id")},
                )

        total = int(albums.get("total") or 0)
        page_limit = int(albums.get("limit") or limit)
        page_offset = int(albums.get("offset") or offset)
        # A short page is the last one, whatever "next" claims.
        has_more = bool(albums.get("next")) and len(raw_items) >= page_limit
        next_offset = page_offset + page_limit if has_more else None
        return PaginatedResponse(
            items=items,
            total=total,
            offset=page_offset,
            limit=page_limit,
            next_offset=next_offset,
        )

    async def get_release(self, external_id: str) -> ReleaseDTO:
        data = await self._client.get_album(external_id)
        try:
            return self._convert_album(data, include_tracks=True)
        except (TypeError, AttributeError, ValueError, KeyError) as e:
            raise _malformed("album", external_id, e) from e

    async def get_artist(self, external_id: str) -> ArtistDTO:
        data = await self._client.get_artist(external_id)
        try:
            return self._convert_artist(data, detailed=True)
        except (TypeError, AttributeError, ValueError, KeyError) as e:
            raise _malformed("artist", external_id, e) from e

    async def get_audio_features(
        self, track_external_ids: list[str]
    ) -> dict[str, AudioFeatures]:
        if not track_external_ids:
            return {}
        raw_items = await self._client.get_audio_features(track_external_ids)
        try:
            return {
                str(item["id"]): AudioFeatures.from_dict(item)
                for item in raw_items
                if item.get("id")
            }
        except (TypeError, AttributeError, ValueError, KeyError) as e:
            raise _malformed("audio-features", ",".join(track_external_ids[:3]), e) from e

    # -------------------------------------------------------------------------
    # JSON -> DTO
    # -------------------------------------------------------------------------

    def _convert_artist(self, data: dict[str, Any], detailed: bool = False) -> ArtistDTO:
        """Spotify artist JSON (full or simplified) to ArtistDTO."""
        images = data.get("images") or []
        followers = data.get("followers")
        return ArtistDTO(
            external_id=data.get("id") or "",
            name=data.get("name") or "",
            # Medium size (usually 320px) for display.
            image_url=_pick_image(images, prefer_index=1),
            image_urls=[
                img["url"] for img in images if isinstance(img, dict) and img.get("url")
            ],
            genres=[g for g in data.get("genres") or [] if isinstance(g, str)],
            popularity=data.get("popularity"),
            followers=followers.get("total") if isinstance(followers, dict) else None,
            external_url=(data.get("external_urls") or {}).get("spotify"),
            is_detailed=detailed,
        )

    def _convert_track(self, data: dict[str, Any]) -> TrackDTO:
        return TrackDTO(
            external_id=data.get("id") or "",
            title=data.get("name") or "",
            duration_ms=int(data.get("duration_ms") or 0),
            track_number=data.get("track_number"),
            disc_number=int(data.get("disc_number") or 1),
            explicit=bool(data.get("explicit", False)),
            preview_url=data.get("preview_url"),
            external_url=(data.get("external_urls") or {}).get("spotify"),
            artists=[
                self._convert_artist(a)
                for a in data.get("artists") or []
                if isinstance(a, dict) and a.get("id")
            ],
        )

    def _convert_album(
        self, data: dict[str, Any], include_tracks: bool = False
    ) -> ReleaseDTO:
        """Spotify album JSON to ReleaseDTO.

        Simplified album objects (search hits) carry no label and no tracks;
        include_tracks marks the DTO as full detail.
        """
        tracks: list[TrackDTO] = []
        if include_tracks:
            tracks_section = data.get("tracks") or {}
            tracks = [
                self._convert_track(t)
                for t in tracks_section.get("items") or []
                if isinstance(t, dict)
            ]

        return ReleaseDTO(
            external_id=data.get("id") or "",
            title=data.get("name") or "",
            label=data.get("label"),
            release_date=data.get("release_date"),
            release_type=data.get("album_type"),
            total_tracks=int(data.get("total_tracks") or 0),
            artwork_url=_pick_image(data.get("images")),
            external_url=(data.get("external_urls") or {}).get("spotify"),
            artists=[
                self._convert_artist(a)
                for a in data.get("artists") or []
                if isinstance(a, dict) and a.get("id")
            ],
            tracks=tracks,
            has_detail=include_tracks,
        )
