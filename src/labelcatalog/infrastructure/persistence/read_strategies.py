"""
Read strategies for the fallback read chains.

Hey future me - every entity type has (at most) three ways to be read:
  1. "joined"      - the nice query: relational joins + aggregates (artist names, track counts)
  2. "simplified"  - same entity, plain single-table SELECTs, no enrichment
  3. "placeholder" - list reads only: something renderable even when the DB gave us nothing

The joined queries are the ones that break first (schema drift, a missing association row,
a dialect that chokes on an aggregate), so the simplified ones deliberately avoid joins
entirely. Each strategy opens its OWN short session - one strategy failing must not poison
the session of the next one.

Strategies return plain dicts so the API can serialise them as-is.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from labelcatalog.application.services.fallback_reader import ReadChain, ReadStrategy

from .database import Database
from .models import (
    AUDIO_FEATURE_COLUMNS,
    ArtistModel,
    ReleaseArtistModel,
    ReleaseModel,
    TrackArtistModel,
    TrackModel,
)

PLACEHOLDER_IMAGE_URL = "https://via.placeholder.com/300"
PLACEHOLDER_ARTIST_IMAGE = "/images/placeholder-artist.jpg"
VARIOUS_ARTISTS = "Various Artists"


# =============================================================================
# ROW SHAPES
# =============================================================================


def _release_row(model: ReleaseModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "external_id": model.external_id,
        "title": model.title,
        "release_date": model.release_date,
        "release_type": model.release_type,
        "total_tracks": model.total_tracks,
        "artwork_url": model.artwork_url or PLACEHOLDER_IMAGE_URL,
        "external_url": model.external_url,
        "label_id": model.label_id,
    }


def _artist_row(model: ArtistModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "external_id": model.external_id,
        "name": model.name,
        "image_url": model.image_url or PLACEHOLDER_ARTIST_IMAGE,
        "genres": list(model.genres or []),
        "popularity": model.popularity,
        "follower_count": model.follower_count,
        "external_url": model.external_url,
    }


def _track_row(model: TrackModel) -> dict[str, Any]:
    return {
        "id": model.id,
        "external_id": model.external_id,
        "title": model.title,
        "release_id": model.release_id,
        "duration_ms": model.duration_ms,
        "track_number": model.track_number,
        "disc_number": model.disc_number,
        "explicit": model.explicit,
        "preview_url": model.preview_url,
        "external_url": model.external_url,
        "audio_features": {name: getattr(model, name) for name in AUDIO_FEATURE_COLUMNS},
        "taxonomy": model.taxonomy,
        "classification_confidence": model.classification_confidence,
    }


def _artist_refs(links: list[Any]) -> list[dict[str, Any]]:
    return [{"id": link.artist.id, "name": link.artist.name} for link in links]


def various_artists_placeholder() -> dict[str, Any]:
    """Sentinel artist shown when an artist list would otherwise be empty."""
    return {
        "id": None,
        "external_id": None,
        "name": VARIOUS_ARTISTS,
        "image_url": PLACEHOLDER_ARTIST_IMAGE,
        "genres": [],
        "popularity": None,
        "follower_count": None,
        "external_url": None,
        "release_count": 0,
        "is_placeholder": True,
    }


# =============================================================================
# STRATEGIES
# =============================================================================


T = TypeVar("T")


class SqlReadStrategies:
    """Query functions for every chain, each with its own session."""

    def __init__(self, database: Database) -> None:
        self._database = database

    async def _run(self, query: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with self._database.session_scope() as session:
            return await query(session)

    # --- releases by label ----------------------------------------------------

    async def releases_joined(self, label_id: str) -> list[dict[str, Any]]:
        async def query(session: AsyncSession) -> list[dict[str, Any]]:
            stmt = (
                select(ReleaseModel, func.count(TrackModel.id).label("track_count"))
                .outerjoin(TrackModel, TrackModel.release_id == ReleaseModel.id)
                .where(ReleaseModel.label_id == label_id)
                .group_by(ReleaseModel.id)
                .options(
                    selectinload(ReleaseModel.artist_links).selectinload(
                        ReleaseArtistModel.artist
                    )
                )
                .order_by(ReleaseModel.release_date.desc(), ReleaseModel.title)
            )
            rows = []
            for release, track_count in (await session.execute(stmt)).all():
                artists = _artist_refs(release.artist_links)
                rows.append(
                    {
                        **_release_row(release),
                        "artists": artists,
                        "artist_names": ", ".join(a["name"] for a in artists)
                        or VARIOUS_ARTISTS,
                        "track_count": int(track_count),
                    }
                )
            return rows

        return await self._run(query)

    async def releases_simple(self, label_id: str) -> list[dict[str, Any]]:
        async def query(session: AsyncSession) -> list[dict[str, Any]]:
            stmt = (
                select(ReleaseModel)
                .where(ReleaseModel.label_id == label_id)
                .order_by(ReleaseModel.title)
            )
            return [_release_row(m) for m in (await session.execute(stmt)).scalars()]

        return await self._run(query)

    # --- artists by label -----------------------------------------------------

    async def artists_joined(self, label_id: str) -> list[dict[str, Any]]:
        async def query(session: AsyncSession) -> list[dict[str, Any]]:
            stmt = (
                select(
                    ArtistModel,
                    func.count(distinct(ReleaseModel.id)).label("release_count"),
                )
                .join(ReleaseArtistModel, ReleaseArtistModel.artist_id == ArtistModel.id)
                .join(ReleaseModel, ReleaseModel.id == ReleaseArtistModel.release_id)
                .where(ReleaseModel.label_id == label_id)
                .group_by(ArtistModel.id)
                .order_by(ArtistModel.name)
            )
            return [
                {**_artist_row(artist), "release_count": int(count)}
                for artist, count in (await session.execute(stmt)).all()
            ]

        return await self._run(query)

    async def artists_simple(self, label_id: str) -> list[dict[str, Any]]:
        async def query(session: AsyncSession) -> list[dict[str, Any]]:
            release_ids = (
                await session.execute(
                    select(ReleaseModel.id).where(ReleaseModel.label_id == label_id)
                )
            ).scalars().all()
            if not release_ids:
                return []
            artist_ids = (
                await session.execute(
                    select(ReleaseArtistModel.artist_id).where(
                        ReleaseArtistModel.release_id.in_(release_ids)
                    )
                )
            ).scalars().all()
            if not artist_ids:
                return []
            stmt = (
                select(ArtistModel)
                .where(ArtistModel.id.in_(set(artist_ids)))
                .order_by(ArtistModel.name)
            )
            return [_artist_row(m) for m in (await session.execute(stmt)).scalars()]

        return await self._run(query)

    async def artists_placeholder(self, label_id: str) -> list[dict[str, Any]]:
        return [various_artists_placeholder()]

    # --- tracks by release ----------------------------------------------------

    async def tracks_joined(self, release_id: str) -> list[dict[str, Any]]:
        async def query(session: AsyncSession) -> list[dict[str, Any]]:
            stmt = (
                select(TrackModel)
                .where(TrackModel.release_id == release_id)
                .options(
                    selectinload(TrackModel.artist_links).selectinload(
                        TrackArtistModel.artist
                    )
                )
                .order_by(TrackModel.disc_number, TrackModel.track_number)
            )
            rows = []
            for track in (await session.execute(stmt)).scalars():
                artists = _artist_refs(track.artist_links)
                rows.append(
                    {
                        **_track_row(track),
                        "artists": artists,
                        "artist_names": ", ".join(a["name"] for a in artists),
                    }
                )
            return rows

        return await self._run(query)

    async def tracks_simple(self, release_id: str) -> list[dict[str, Any]]:
        async def query(session: AsyncSession) -> list[dict[str, Any]]:
            stmt = (
                select(TrackModel)
                .where(TrackModel.release_id == release_id)
                .order_by(TrackModel.disc_number, TrackModel.track_number)
            )
            return [_track_row(m) for m in (await session.execute(stmt)).scalars()]

        return await self._run(query)

    async def empty_list(self, key: str) -> list[dict[str, Any]]:
        return []

    # --- single entities ------------------------------------------------------

    async def release_joined(self, release_id: str) -> dict[str, Any] | None:
        async def query(session: AsyncSession) -> dict[str, Any] | None:
            stmt = (
                select(ReleaseModel)
                .where(ReleaseModel.id == release_id)
                .options(
                    selectinload(ReleaseModel.artist_links).selectinload(
                        ReleaseArtistModel.artist
                    ),
                    selectinload(ReleaseModel.tracks),
                    selectinload(ReleaseModel.label),
                )
            )
            release = (await session.execute(stmt)).scalar_one_or_none()
            if release is None:
                return None
            artists = _artist_refs(release.artist_links)
            return {
                **_release_row(release),
                "label_name": release.label.display_name if release.label else None,
                "artists": artists,
                "artist_names": ", ".join(a["name"] for a in artists) or VARIOUS_ARTISTS,
                "track_count": len(release.tracks),
            }

        return await self._run(query)

    async def release_simple(self, release_id: str) -> dict[str, Any] | None:
        async def query(session: AsyncSession) -> dict[str, Any] | None:
            model = await session.get(ReleaseModel, release_id)
            return _release_row(model) if model else None

        return await self._run(query)

    async def artist_joined(self, artist_id: str) -> dict[str, Any] | None:
        async def query(session: AsyncSession) -> dict[str, Any] | None:
            stmt = (
                select(
                    ArtistModel,
                    func.count(distinct(ReleaseArtistModel.release_id)).label("release_count"),
                )
                .outerjoin(ReleaseArtistModel, ReleaseArtistModel.artist_id == ArtistModel.id)
                .where(ArtistModel.id == artist_id)
                .group_by(ArtistModel.id)
            )
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            artist, count = row
            return {**_artist_row(artist), "release_count": int(count)}

        return await self._run(query)

    async def artist_simple(self, artist_id: str) -> dict[str, Any] | None:
        async def query(session: AsyncSession) -> dict[str, Any] | None:
            model = await session.get(ArtistModel, artist_id)
            return _artist_row(model) if model else None

        return await self._run(query)

    async def track_joined(self, track_id: str) -> dict[str, Any] | None:
        async def query(session: AsyncSession) -> dict[str, Any] | None:
            stmt = (
                select(TrackModel, ReleaseModel.title)
                .join(ReleaseModel, ReleaseModel.id == TrackModel.release_id)
                .where(TrackModel.id == track_id)
                .options(
                    selectinload(TrackModel.artist_links).selectinload(
                        TrackArtistModel.artist
                    )
                )
            )
            row = (await session.execute(stmt)).first()
            if row is None:
                return None
            track, release_title = row
            artists = _artist_refs(track.artist_links)
            return {
                **_track_row(track),
                "release_title": release_title,
                "artists": artists,
                "artist_names": ", ".join(a["name"] for a in artists),
            }

        return await self._run(query)

    async def track_simple(self, track_id: str) -> dict[str, Any] | None:
        async def query(session: AsyncSession) -> dict[str, Any] | None:
            model = await session.get(TrackModel, track_id)
            return _track_row(model) if model else None

        return await self._run(query)


def build_read_chains(database: Database) -> dict[str, ReadChain]:
    """All fallback chains served by the catalog read API."""
    s = SqlReadStrategies(database)
    return {
        "releases": ReadChain(
            strategies=(
                ReadStrategy("joined", s.releases_joined),
                ReadStrategy("simplified", s.releases_simple),
                ReadStrategy("placeholder", s.empty_list, is_placeholder=True),
            ),
        ),
        "artists": ReadChain(
            strategies=(
                ReadStrategy("joined", s.artists_joined),
                ReadStrategy("simplified", s.artists_simple),
                ReadStrategy("placeholder", s.artists_placeholder, is_placeholder=True),
            ),
        ),
        "tracks": ReadChain(
            strategies=(
                ReadStrategy("joined", s.tracks_joined),
                ReadStrategy("simplified", s.tracks_simple),
                ReadStrategy("placeholder", s.empty_list, is_placeholder=True),
            ),
        ),
        "release": ReadChain(
            strategies=(
                ReadStrategy("joined", s.release_joined),
                ReadStrategy("simplified", s.release_simple),
            ),
            single_entity=True,
        ),
        "artist": ReadChain(
            strategies=(
                ReadStrategy("joined", s.artist_joined),
                ReadStrategy("simplified", s.artist_simple),
            ),
            single_entity=True,
        ),
        "track": ReadChain(
            strategies=(
                ReadStrategy("joined", s.track_joined),
                ReadStrategy("simplified", s.track_simple),
            ),
            single_entity=True,
        ),
    }

