"""Domain entities."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from labelcatalog.domain.exceptions import InvalidStateException, ValidationError


def new_id() -> str:
    """Generate a fresh internal id."""
    return str(uuid.uuid4())


# Hey future me, ImportRunStatus is stored as string in DB, not int. The allowed moves are
# pending -> running -> completed|failed and NOTHING else. ImportRun enforces that below;
# never assign .status directly from service code.
class ImportRunStatus(str, Enum):
    """Status of a label import run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class EntityKind(str, Enum):
    """Kinds of catalog rows the resolver can upsert."""

    ARTIST = "artist"
    RELEASE = "release"
    TRACK = "track"


# Yo, Label identity is IMMUTABLE once created. We reference labels by id, we never infer
# one from a catalog string at runtime (that's what the alias table in label_matching is for).
# variants are alternative spellings used as search terms ("BuildIt Tech", "Build-It Tech").
@dataclass(frozen=True)
class Label:
    """Record label a catalog import targets."""

    id: str
    display_name: str
    variants: tuple[str, ...] = ()
    slug: str | None = None

    def __post_init__(self) -> None:
        if not self.id or not self.id.strip():
            raise ValidationError("Label id cannot be empty")
        if not self.display_name or not self.display_name.strip():
            raise ValidationError("Label display name cannot be empty")

    @property
    def search_terms(self) -> list[str]:
        """Display name plus variants, deduplicated, order preserved."""
        seen: set[str] = set()
        terms: list[str] = []
        for term in (self.display_name, *self.variants):
            key = term.strip().lower()
            if key and key not in seen:
                seen.add(key)
                terms.append(term.strip())
        return terms


# Hey future me, the seven audio features are all OPTIONAL. A track imported without
# fetch_audio_features has None everywhere and classification treats bounded checks on
# missing features as failed, so such a track can only win on genres.
@dataclass
class AudioFeatures:
    """Numeric acoustic descriptors for a track."""

    energy: float | None = None
    tempo: float | None = None
    instrumentalness: float | None = None
    acousticness: float | None = None
    valence: float | None = None
    speechiness: float | None = None
    danceability: float | None = None

    FEATURE_NAMES = (
        "energy",
        "tempo",
        "instrumentalness",
        "acousticness",
        "valence",
        "speechiness",
        "danceability",
    )

    def get(self, name: str) -> float | None:
        """Feature value by name, None if unknown or missing."""
        if name not in self.FEATURE_NAMES:
            return None
        value: float | None = getattr(self, name)
        return value

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in self.FEATURE_NAMES)

    def to_dict(self) -> dict[str, float | None]:
        return {name: getattr(self, name) for name in self.FEATURE_NAMES}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AudioFeatures":
        """Build from a loose mapping, ignoring unknown keys and non-numeric values."""
        if not data:
            return cls()
        values: dict[str, float | None] = {}
        for name in cls.FEATURE_NAMES:
            raw = data.get(name)
            if isinstance(raw, bool) or raw is None:
                continue
            if isinstance(raw, int | float):
                values[name] = float(raw)
        return cls(**values)


@dataclass
class Track:
    """Track row as stored locally."""

    id: str
    external_id: str
    title: str
    release_id: str
    duration_ms: int = 0
    track_number: int | None = None
    disc_number: int = 1
    explicit: bool = False
    preview_url: str | None = None
    external_url: str | None = None
    artist_ids: list[str] = field(default_factory=list)
    audio_features: AudioFeatures = field(default_factory=AudioFeatures)
    taxonomy: str | None = None
    classification_confidence: float | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class ImportRun:
    """One import run for one label.

    Status moves strictly pending -> running -> completed|failed. Counts only
    ever reflect releases whose transaction committed.
    """

    id: str
    label_id: str
    status: ImportRunStatus = ImportRunStatus.PENDING
    dry_run: bool = False
    releases_imported: int = 0
    artists_imported: int = 0
    tracks_imported: int = 0
    releases_created: int = 0
    artists_created: int = 0
    tracks_created: int = 0
    releases_skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def create(cls, label_id: str, dry_run: bool = False) -> "ImportRun":
        return cls(id=new_id(), label_id=label_id, dry_run=dry_run)

    @property
    def is_finished(self) -> bool:
        return self.status in (ImportRunStatus.COMPLETED, ImportRunStatus.FAILED)

    def start(self) -> None:
        """Mark run as running."""
        if self.status != ImportRunStatus.PENDING:
            raise InvalidStateException(
                f"Cannot start import run in status {self.status.value}"
            )
        self.status = ImportRunStatus.RUNNING
        self.started_at = datetime.now(UTC)

    def complete(self, message: str | None = None) -> None:
        """Mark run as completed."""
        if self.status != ImportRunStatus.RUNNING:
            raise InvalidStateException(
                f"Cannot complete import run in status {self.status.value}"
            )
        self.status = ImportRunStatus.COMPLETED
        self.message = message
        self.completed_at = datetime.now(UTC)

    # Listen up, fail() is allowed from PENDING too. A run whose label lookup blows up
    # before start() still has to end up "failed" in the history, never stuck at pending.
    def fail(self, message: str) -> None:
        """Mark run as failed."""
        if self.is_finished:
            raise InvalidStateException(
                f"Cannot fail import run in status {self.status.value}"
            )
        self.status = ImportRunStatus.FAILED
        self.message = message
        self.completed_at = datetime.now(UTC)

    def record_error(self, error: dict[str, Any]) -> None:
        self.errors.append(error)

    def record_release(
        self,
        artists: int,
        tracks: int,
        release_created: bool = False,
        artists_created: int = 0,
        tracks_created: int = 0,
    ) -> None:
        """Add the counts of one committed release."""
        self.releases_imported += 1
        self.artists_imported += artists
        self.tracks_imported += tracks
        if release_created:
            self.releases_created += 1
        self.artists_created += artists_created
        self.tracks_created += tracks_created

    def summary(self) -> dict[str, Any]:
        """Aggregate result returned to callers of run()."""
        return {
            "run_id": self.id,
            "label_id": self.label_id,
            "status": self.status.value,
            "dry_run": self.dry_run,
            "releases_imported": self.releases_imported,
            "artists_imported": self.artists_imported,
            "tracks_imported": self.tracks_imported,
            "releases_created": self.releases_created,
            "artists_created": self.artists_created,
            "tracks_created": self.tracks_created,
            "releases_skipped": self.releases_skipped,
            "errors": list(self.errors),
            "message": self.message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
        }


@dataclass(frozen=True)
class Classification:
    """Result of classifying one item against every taxonomy."""

    label: str
    confidence: float
    scores: dict[str, float]
    track_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "track_id": self.track_id,
            "label": self.label,
            "confidence": self.confidence,
            "scores": dict(self.scores),
        }


__all__ = [
    "new_id",
    "ImportRunStatus",
    "EntityKind",
    "Label",
    "AudioFeatures",
    "Track",
    "ImportRun",
    "Classification",
]
