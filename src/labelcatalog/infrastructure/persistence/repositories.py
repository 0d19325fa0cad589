"""Repository implementations for the catalog ports."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from labelcatalog.domain.entities import (
    AudioFeatures,
    EntityKind,
    ImportRun,
    ImportRunStatus,
    Label,
    Track,
)
from labelcatalog.domain.exceptions import (
    EntityNotFoundException,
    PersistenceError,
    ValidationError,
)
from labelcatalog.domain.ports import (
    IEntityStore,
    IImportRunRepository,
    ILabelStore,
    IPersistenceGateway,
    IUnitOfWork,
)

from .database import Database
from .models import (
    AUDIO_FEATURE_COLUMNS,
    ArtistModel,
    Base,
    ImportRunModel,
    LabelModel,
    ReleaseArtistModel,
    ReleaseModel,
    TrackArtistModel,
    TrackModel,
    ensure_utc_aware,
)

logger = logging.getLogger(__name__)

# Hey future me - these are the three labels the catalog exists for. Variants are the spellings
# the external catalog actually uses; each one becomes a label:"..." search and an alias.
DEFAULT_LABELS: tuple[Label, ...] = (
    Label(
        id="buildit-records",
        display_name="Build It Records",
        slug="buildit-records",
        variants=("Build It Records", "BuildIt Records", "Build-It Records"),
    ),
    Label(
        id="buildit-tech",
        display_name="Build It Tech",
        slug="buildit-tech",
        variants=("Build It Tech", "BuildIt Tech", "Build-It Tech"),
    ),
    Label(
        id="buildit-deep",
        display_name="Build It Deep",
        slug="buildit-deep",
        variants=("Build It Deep", "BuildIt Deep", "Build-It Deep"),
    ),
)

_MODELS: dict[EntityKind, type[Base]] = {
    EntityKind.ARTIST: ArtistModel,
    EntityKind.RELEASE: ReleaseModel,
    EntityKind.TRACK: TrackModel,
}


def _label_from_model(model: LabelModel) -> Label:
    return Label(
        id=model.id,
        display_name=model.display_name,
        variants=tuple(model.variants or ()),
        slug=model.slug,
    )


def track_from_model(model: TrackModel) -> Track:
    """TrackModel (with artist_links loaded) to Track entity."""
    return Track(
        id=model.id,
        external_id=model.external_id,
        title=model.title,
        release_id=model.release_id,
        duration_ms=model.duration_ms,
        track_number=model.track_number,
        disc_number=model.disc_number,
        explicit=model.explicit,
        preview_url=model.preview_url,
        external_url=model.external_url,
        artist_ids=[link.artist_id for link in model.artist_links],
        audio_features=AudioFeatures(
            **{name: getattr(model, name) for name in AUDIO_FEATURE_COLUMNS}
        ),
        taxonomy=model.taxonomy,
        classification_confidence=model.classification_confidence,
    )


def _run_from_model(model: ImportRunModel) -> ImportRun:
    return ImportRun(
        id=model.id,
        label_id=model.label_id,
        status=ImportRunStatus(model.status),
        dry_run=model.dry_run,
        releases_imported=model.releases_imported,
        artists_imported=model.artists_imported,
        tracks_imported=model.tracks_imported,
        releases_created=model.releases_created,
        artists_created=model.artists_created,
        tracks_created=model.tracks_created,
        releases_skipped=model.releases_skipped,
        errors=list(model.errors or []),
        message=model.message,
        started_at=ensure_utc_aware(model.started_at),
        completed_at=ensure_utc_aware(model.completed_at),
        created_at=ensure_utc_aware(model.created_at) or model.created_at,
    )


async def seed_default_labels(
    session: AsyncSession, labels: tuple[Label, ...] = DEFAULT_LABELS
) -> int:
    """Insert missing default labels; existing rows are left untouched.

    Returns:
        Number of labels inserted
    """
    existing = set((await session.execute(select(LabelModel.id))).scalars().all())
    inserted = 0
    for label in labels:
        if label.id in existing:
            continue
        session.add(
            LabelModel(
                id=label.id,
                display_name=label.display_name,
                slug=label.slug,
                variants=list(label.variants),
            )
        )
        inserted += 1
    if inserted:
        await session.flush()
        logger.info(f"Seeded {inserted} default label(s)")
    return inserted


class SqlAlchemyLabelStore(ILabelStore):
    """Label Store backed by the labels table.

    Opens its own short read session per call, so it can be used outside any
    import transaction.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def get_label(self, label_id: str) -> Label:
        try:
            async with self._database.session_scope() as session:
                model = await session.get(LabelModel, label_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Label store unavailable: {e}") from e
        if model is None:
            raise EntityNotFoundException("Label", label_id)
        return _label_from_model(model)

    async def list_labels(self) -> list[Label]:
        try:
            async with self._database.session_scope() as session:
                result = await session.execute(select(LabelModel).order_by(LabelModel.id))
                models = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Label store unavailable: {e}") from e
        return [_label_from_model(m) for m in models]


# Hey future me, SqlAlchemyEntityStore NEVER commits. It flushes so constraint violations
# surface right at the offending upsert (as PersistenceError) instead of at commit time,
# which lets the importer report WHICH entity broke the release.
class SqlAlchemyEntityStore(IEntityStore):
    """IEntityStore over one AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _columns(kind: EntityKind, attributes: dict[str, Any]) -> dict[str, Any]:
        """Map a resolver attribute record onto model columns."""
        model = _MODELS[kind]
        column_names = set(model.__table__.columns.keys())
        values = {k: v for k, v in attributes.items() if k in column_names}
        if kind is EntityKind.TRACK and isinstance(attributes.get("audio_features"), dict):
            for name in AUDIO_FEATURE_COLUMNS:
                if name in attributes["audio_features"]:
                    values[name] = attributes["audio_features"][name]
        return values

    async def _flush(self, kind: EntityKind, external_id: str | None) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise PersistenceError(
                f"Constraint violation writing {kind.value} {external_id}: {e.orig}",
                entity_kind=kind.value,
                external_id=external_id,
            ) from e

    async def find_by_external_id(
        self, kind: EntityKind, external_id: str
    ) -> dict[str, Any] | None:
        model_cls = _MODELS[kind]
        stmt = select(model_cls).where(model_cls.external_id == external_id)  # type: ignore[attr-defined]
        model = (await self.session.execute(stmt)).scalar_one_or_none()
        if model is None:
            return None
        row = {name: getattr(model, name) for name in model_cls.__table__.columns.keys()}
        if kind is EntityKind.TRACK:
            row["audio_features"] = {name: row[name] for name in AUDIO_FEATURE_COLUMNS}
        return row

    async def create(
        self, kind: EntityKind, entity_id: str, external_id: str, attributes: dict[str, Any]
    ) -> None:
        model_cls = _MODELS[kind]
        values = self._columns(kind, attributes)
        values.pop("id", None)
        values.pop("external_id", None)
        self.session.add(model_cls(id=entity_id, external_id=external_id, **values))
        await self._flush(kind, external_id)

    async def update(
        self, kind: EntityKind, entity_id: str, attributes: dict[str, Any]
    ) -> None:
        model = await self.session.get(_MODELS[kind], entity_id)
        if model is None:
            raise EntityNotFoundException(kind.value, entity_id)
        for name, value in self._columns(kind, attributes).items():
            if name in ("id", "external_id"):
                continue
            setattr(model, name, value)
        await self._flush(kind, getattr(model, "external_id", None))

    async def link_artists(
        self, kind: EntityKind, entity_id: str, artist_ids: list[str]
    ) -> int:
        if kind is EntityKind.RELEASE:
            link_cls: type[ReleaseArtistModel] | type[TrackArtistModel] = ReleaseArtistModel
            owner_column = ReleaseArtistModel.release_id
            owner_field = "release_id"
        elif kind is EntityKind.TRACK:
            link_cls = TrackArtistModel
            owner_column = TrackArtistModel.track_id
            owner_field = "track_id"
        else:
            raise ValidationError(f"Cannot link artists to a {kind.value}")

        stmt = select(link_cls.artist_id).where(owner_column == entity_id)
        existing = list((await self.session.execute(stmt)).scalars().all())
        added = 0
        for artist_id in artist_ids:
            if artist_id in existing:
                continue
            values = {owner_field: entity_id, "artist_id": artist_id, "position": len(existing)}
            self.session.add(link_cls(**values))
            existing.append(artist_id)
            added += 1
        if added:
            await self._flush(kind, entity_id)
        return added

    async def list_unclassified_tracks(
        self, limit: int = 100
    ) -> list[tuple[Track, list[str]]]:
        has_features = or_(
            *(getattr(TrackModel, name).is_not(None) for name in AUDIO_FEATURE_COLUMNS)
        )
        stmt = (
            select(TrackModel)
            .where(TrackModel.taxonomy.is_(None), has_features)
            .options(
                selectinload(TrackModel.artist_links).selectinload(TrackArtistModel.artist)
            )
            .order_by(TrackModel.created_at, TrackModel.id)
            .limit(limit)
        )
        models = (await self.session.execute(stmt)).scalars().all()

        result: list[tuple[Track, list[str]]] = []
        for model in models:
            genres: list[str] = []
            for link in model.artist_links:
                for genre in link.artist.genres or []:
                    if genre not in genres:
                        genres.append(genre)
            result.append((track_from_model(model), genres))
        return result

    async def set_track_classification(
        self, track_id: str, taxonomy: str, confidence: float
    ) -> None:
        model = await self.session.get(TrackModel, track_id)
        if model is None:
            raise EntityNotFoundException("Track", track_id)
        model.taxonomy = taxonomy
        model.classification_confidence = confidence
        await self._flush(EntityKind.TRACK, model.external_id)


class SqlAlchemyImportRunRepository(IImportRunRepository):
    """ImportRun history over one AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _apply(model: ImportRunModel, run: ImportRun) -> None:
        model.label_id = run.label_id
        model.status = run.status.value
        model.dry_run = run.dry_run
        model.releases_imported = run.releases_imported
        model.artists_imported = run.artists_imported
        model.tracks_imported = run.tracks_imported
        model.releases_created = run.releases_created
        model.artists_created = run.artists_created
        model.tracks_created = run.tracks_created
        model.releases_skipped = run.releases_skipped
        model.errors = list(run.errors)
        model.message = run.message
        model.started_at = run.started_at
        model.completed_at = run.completed_at

    async def add(self, run: ImportRun) -> None:
        model = ImportRunModel(id=run.id, created_at=run.created_at)
        self._apply(model, run)
        self.session.add(model)
        await self.session.flush()

    async def update(self, run: ImportRun) -> None:
        model = await self.session.get(ImportRunModel, run.id)
        if model is None:
            raise EntityNotFoundException("ImportRun", run.id)
        self._apply(model, run)
        await self.session.flush()

    async def get(self, run_id: str) -> ImportRun | None:
        model = await self.session.get(ImportRunModel, run_id)
        return _run_from_model(model) if model else None

    async def list_by_label(self, label_id: str, limit: int = 20) -> list[ImportRun]:
        stmt = (
            select(ImportRunModel)
            .where(ImportRunModel.label_id == label_id)
            .order_by(ImportRunModel.created_at.desc())
            .limit(limit)
        )
        return [_run_from_model(m) for m in (await self.session.execute(stmt)).scalars()]

    async def list_recent(self, limit: int = 20) -> list[ImportRun]:
        stmt = select(ImportRunModel).order_by(ImportRunModel.created_at.desc()).limit(limit)
        return [_run_from_model(m) for m in (await self.session.execute(stmt)).scalars()]


class SqlAlchemyUnitOfWork(IUnitOfWork):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.entities = SqlAlchemyEntityStore(session)
        self.runs = SqlAlchemyImportRunRepository(session)


class SqlAlchemyPersistence(IPersistenceGateway):
    """One session per transaction() block, committed or rolled back as a whole."""

    def __init__(self, database: Database) -> None:
        self._database = database

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlAlchemyUnitOfWork]:
        try:
            async with self._database.session_scope() as session:
                yield SqlAlchemyUnitOfWork(session)
        except IntegrityError as e:
            # Constraint violations that only surface at commit time.
            raise PersistenceError(f"Commit rejected by the database: {e.orig}") from e
