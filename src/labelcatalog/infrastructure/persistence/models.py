"""SQLAlchemy ORM models for the label catalog."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite drops tzinfo on the way back out. Use this before comparing or
# serialising DB datetimes so we never mix naive and aware values.
def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def new_uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Listen up, labels are seeded, never created by imports. variants is a JSON list of
# alternative spellings used as search terms and for the alias table.
class LabelModel(Base):
    """Record label."""

    __tablename__ = "labels"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)
    variants: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)

    releases: Mapped[list["ReleaseModel"]] = relationship(
        "ReleaseModel", back_populates="label"
    )


# Yo, external_id is THE idempotency key for every catalog table - unique index, never
# updated. id is our own UUID and also never changes once the row exists.
class ArtistModel(Base):
    """Artist imported from the catalog service."""

    __tablename__ = "artists"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    image_urls: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    genres: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    popularity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    follower_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    external_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (Index("ix_artists_name_lower", func.lower(name)),)


class ReleaseModel(Base):
    """Release (album/EP/single) owned by a label."""

    __tablename__ = "releases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    release_date: Mapped[str | None] = mapped_column(String(10), nullable=True)
    release_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total_tracks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    artwork_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    external_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    label_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("labels.id"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    label: Mapped[LabelModel | None] = relationship(
        "LabelModel", back_populates="releases"
    )
    tracks: Mapped[list["TrackModel"]] = relationship(
        "TrackModel", back_populates="release", order_by="TrackModel.disc_number"
    )
    artist_links: Mapped[list["ReleaseArtistModel"]] = relationship(
        "ReleaseArtistModel", order_by="ReleaseArtistModel.position"
    )


# Hey future me, the seven audio feature columns are nullable - most tracks are imported
# without features. taxonomy/classification_confidence are written ONLY by the
# classification service, never by the importer, so re-imports don't reset them.
class TrackModel(Base):
    """Track on a release."""

    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    external_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    release_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("releases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    duration_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    track_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    disc_number: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    explicit: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    preview_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    external_url: Mapped[str | None] = mapped_column(String(512), nullable=True)

    energy: Mapped[float | None] = mapped_column(Float, nullable=True)
    tempo: Mapped[float | None] = mapped_column(Float, nullable=True)
    instrumentalness: Mapped[float | None] = mapped_column(Float, nullable=True)
    acousticness: Mapped[float | None] = mapped_column(Float, nullable=True)
    valence: Mapped[float | None] = mapped_column(Float, nullable=True)
    speechiness: Mapped[float | None] = mapped_column(Float, nullable=True)
    danceability: Mapped[float | None] = mapped_column(Float, nullable=True)

    taxonomy: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    classification_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utc_now, onupdate=utc_now, nullable=False
    )

    release: Mapped[ReleaseModel] = relationship("ReleaseModel", back_populates="tracks")
    artist_links: Mapped[list["TrackArtistModel"]] = relationship(
        "TrackArtistModel", order_by="TrackArtistModel.position"
    )


class ReleaseArtistModel(Base):
    """Release <-> artist link, position 0 is the primary artist."""

    __tablename__ = "release_artists"

    release_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("releases.id", ondelete="CASCADE"), primary_key=True
    )
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    artist: Mapped[ArtistModel] = relationship("ArtistModel")


class TrackArtistModel(Base):
    """Track <-> artist link."""

    __tablename__ = "track_artists"

    track_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracks.id", ondelete="CASCADE"), primary_key=True
    )
    artist_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("artists.id", ondelete="CASCADE"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    artist: Mapped[ArtistModel] = relationship("ArtistModel")


# Yo, no FK on label_id: a run for an unknown label is still recorded (as failed) so the
# history shows the attempt.
class ImportRunModel(Base):
    """History row for one label import run."""

    __tablename__ = "import_runs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    label_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    dry_run: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    releases_imported: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    artists_imported: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tracks_imported: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    releases_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    artists_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    tracks_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    releases_skipped: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    errors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, server_default="[]"
    )
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now, nullable=False, index=True)


AUDIO_FEATURE_COLUMNS = (
    "energy",
    "tempo",
    "instrumentalness",
    "acousticness",
    "valence",
    "speechiness",
    "danceability",
)
