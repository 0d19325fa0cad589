"""
CatalogImporter - per-label import runs: search -> fetch -> match -> resolve.

Hey future me - read this before touching the run loop!

1. SEARCH: every search term of the label (display name + variants) becomes a label:"..."
   query, paged with page_size and a page_delay between pages, until the catalog says there's
   no next page or offset hits max_offset. Hits are deduplicated by external id across ALL
   variants, first seen wins, order kept.
2. FETCH: full release detail per candidate (search hits have no label string and no tracks).
3. MATCH: LabelMatcher on (release.label, label.display_name) OR the alias table resolves the
   release's label string to this label. No match = skipped (INFO log), never an error.
4. RESOLVE: ONE transaction per release: artists, then the release, then tracks + links.
   Anything raising inside rolls back only that release, becomes a PartialImportError in
   run.errors (WARNING log) and the loop moves on.

Releases are processed strictly one after another. Only run-level problems abort the whole
run (status=failed, exception re-raised): unknown label, Label Store unreachable, missing or
rejected catalog credentials. Counts only ever include committed releases.

Same-label runs must not overlap (two transactions upserting the same external ids can race);
serialising runs per label is the caller's job, nothing in here locks.
"""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from labelcatalog.application.services.entity_resolver import EntityResolver
from labelcatalog.config.settings import ImporterSettings
from labelcatalog.domain.dtos import ArtistDTO, ReleaseDTO, TrackDTO
from labelcatalog.domain.entities import EntityKind, ImportRun, Label
from labelcatalog.domain.exceptions import (
    ConfigurationError,
    DomainException,
    EntityNotFoundException,
    PartialImportError,
    ValidationError,
)
from labelcatalog.domain.ports import ICatalogService, ILabelStore, IPersistenceGateway
from labelcatalog.domain.value_objects.label_matching import LabelAliasTable, LabelMatcher
from labelcatalog.infrastructure.observability.logger_template import log_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImporterOptions:
    page_size: int = 50
    page_delay_seconds: float = 1.0
    max_offset: int = 500
    fetch_artist_details: bool = True
    fetch_audio_features: bool = False

    @classmethod
    def from_settings(cls, settings: ImporterSettings) -> "ImporterOptions":
        return cls(
            page_size=settings.page_size,
            page_delay_seconds=settings.page_delay_seconds,
            max_offset=settings.max_offset,
            fetch_artist_details=settings.fetch_artist_details,
            fetch_audio_features=settings.fetch_audio_features,
        )


@dataclass
class _ReleaseOutcome:
    artists: int
    tracks: int
    release_created: bool
    artists_created: int
    tracks_created: int


class _StageFailure(Exception):
    """Carries the resolve stage a release transaction died in."""

    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(stage)
        self.stage = stage
        self.cause = cause


def search_query(term: str) -> str:
    """Catalog search query for one label spelling."""
    return f'label:"{term}"'


def _describe(error: Exception) -> str:
    """Domain message when there is one, otherwise "TypeName: text"."""
    return getattr(error, "message", None) or f"{type(error).__name__}: {error}"


class CatalogImporter:
    """Orchestrates import runs for labels."""

    def __init__(
        self,
        catalog: ICatalogService,
        labels: ILabelStore,
        persistence: IPersistenceGateway,
        matcher: LabelMatcher | None = None,
        options: ImporterOptions | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._catalog = catalog
        self._labels = labels
        self._persistence = persistence
        self._matcher = matcher or LabelMatcher()
        self.options = options or ImporterOptions()
        self._sleep = sleep

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    async def run(self, label_id: str, dry_run: bool = False) -> dict[str, Any]:
        """Import one label and return the run summary.

        Raises:
            ValidationError: label_id empty
            NotFoundError: label does not exist (run recorded as failed)
            ConfigurationError: catalog credentials missing/rejected (run failed)
            DomainException: Label Store or run history unreachable (run failed)
        """
        run, error = await self._execute(label_id, dry_run)
        if error is not None:
            raise error
        return run.summary()

    async def run_all(self, dry_run: bool = False) -> list[dict[str, Any]]:
        """Import every known label, one after another.

        A label whose run fails is reported with status "failed"; later labels
        still run. Failing to list the labels at all is raised.
        """
        labels = await self._labels.list_labels()
        summaries: list[dict[str, Any]] = []
        for label in labels:
            run, error = await self._execute(label.id, dry_run)
            summary = run.summary()
            if error is not None:
                summary["error_type"] = type(error).__name__
            summaries.append(summary)
        return summaries

    async def get_run(self, run_id: str) -> ImportRun:
        async with self._persistence.transaction() as uow:
            run = await uow.runs.get(run_id)
        if run is None:
            raise EntityNotFoundException("ImportRun", run_id)
        return run

    async def list_runs(
        self, label_id: str | None = None, limit: int = 20
    ) -> list[ImportRun]:
        """Run history, most recent first, optionally for one label."""
        async with self._persistence.transaction() as uow:
            if label_id:
                return await uow.runs.list_by_label(label_id, limit=limit)
            return await uow.runs.list_recent(limit=limit)

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    async def _execute(
        self, label_id: str, dry_run: bool
    ) -> tuple[ImportRun, Exception | None]:
        if not isinstance(label_id, str) or not label_id.strip():
            raise ValidationError("label_id must not be empty")
        label_id = label_id.strip()

        run = ImportRun.create(label_id, dry_run=dry_run)
        await self._save_run(run, new=True)

        try:
            async with log_operation(
                logger, "catalog_import", label_id=label_id, run_id=run.id, dry_run=dry_run
            ) as completion:
                run.start()
                await self._save_run(run)
                await self._import_label(run)
                run.complete(
                    f"Imported {run.releases_imported} release(s), "
                    f"skipped {run.releases_skipped}, {len(run.errors)} error(s)"
                )
                completion.update(
                    releases_imported=run.releases_imported,
                    artists_imported=run.artists_imported,
                    tracks_imported=run.tracks_imported,
                    errors=len(run.errors),
                )
        except Exception as e:
            if not run.is_finished:
                run.fail(_describe(e))
            await self._save_run(run)
            return run, e

        await self._save_run(run)
        return run, None

    async def _save_run(self, run: ImportRun, new: bool = False) -> None:
        # Dry runs write nothing at all, not even history.
        if run.dry_run:
            return
        async with self._persistence.transaction() as uow:
            if new:
                await uow.runs.add(run)
            else:
                await uow.runs.update(run)

    async def _import_label(self, run: ImportRun) -> None:
        label = await self._labels.get_label(run.label_id)
        alias_table = LabelAliasTable.from_labels(await self._labels.list_labels())

        candidates = await self._collect_candidates(label, run)
        logger.info(
            f"Found {len(candidates)} candidate release(s) for {label.display_name}",
            extra={"label_id": label.id, "candidates": len(candidates)},
        )

        artist_details: dict[str, ArtistDTO] = {}
        for candidate in candidates:
            await self._process_candidate(candidate, label, alias_table, run, artist_details)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def _collect_candidates(self, label: Label, run: ImportRun) -> list[ReleaseDTO]:
        seen: dict[str, ReleaseDTO] = {}
        limit = self.options.page_size

        for term in label.search_terms:
            query = search_query(term)
            offset = 0
            while offset < self.options.max_offset:
                try:
                    page = await self._catalog.search_releases(query, limit=limit, offset=offset)
                except ConfigurationError:
                    raise
                except DomainException as e:
                    # A broken search page loses that variant's remaining pages, not the run.
                    error = PartialImportError(
                        f"Search failed for {query} at offset {offset}: {e.message}",
                        stage="search",
                        cause=e,
                    )
                    run.record_error(error.to_dict())
                    logger.warning(error.message, extra={"label_id": label.id})
                    break

                for item in page.items:
                    seen.setdefault(item.external_id, item)

                if not page.items or page.next_offset is None:
                    break
                if page.total and page.next_offset >= page.total:
                    break
                offset = page.next_offset
                if offset >= self.options.max_offset:
                    logger.info(
                        f"Stopping search for {query} at safety cap offset {offset}",
                        extra={"label_id": label.id},
                    )
                    break
                await self._sleep(self.options.page_delay_seconds)

        return list(seen.values())

    # -------------------------------------------------------------------------
    # Per release
    # -------------------------------------------------------------------------

    def _matches_label(
        self, release: ReleaseDTO, label: Label, alias_table: LabelAliasTable
    ) -> bool:
        if self._matcher.matches(release.label, label.display_name):
            return True
        return alias_table.resolve(release.label) == label.id

    async def _process_candidate(
        self,
        candidate: ReleaseDTO,
        label: Label,
        alias_table: LabelAliasTable,
        run: ImportRun,
        artist_details: dict[str, ArtistDTO],
    ) -> None:
        try:
            release = await self._catalog.get_release(candidate.external_id)
        except ConfigurationError:
            raise
        except Exception as e:
            self._record_failure(run, candidate, "fetch", e)
            return

        if not self._matches_label(release, label, alias_table):
            run.releases_skipped += 1
            logger.info(
                f"Skipping '{release.title}': label '{release.label}' "
                f"does not match '{label.display_name}'",
                extra={"release_external_id": release.external_id, "label_id": label.id},
            )
            return

        artists = [
            await self._artist_detail(ref, artist_details)
            for ref in release.contributing_artists()
        ]
        release = await self._with_audio_features(release)

        if run.dry_run:
            run.record_release(artists=len(artists), tracks=len(release.tracks))
            return

        try:
            outcome = await self._resolve_release(release, artists, label)
        except _StageFailure as failure:
            if isinstance(failure.cause, ConfigurationError):
                raise failure.cause from None
            self._record_failure(run, release, failure.stage, failure.cause)
            return

        run.record_release(
            artists=outcome.artists,
            tracks=outcome.tracks,
            release_created=outcome.release_created,
            artists_created=outcome.artists_created,
            tracks_created=outcome.tracks_created,
        )
        logger.debug(
            f"Imported '{release.title}' ({outcome.tracks} tracks)",
            extra={"release_external_id": release.external_id},
        )

    async def _artist_detail(
        self, ref: ArtistDTO, cache: dict[str, ArtistDTO]
    ) -> ArtistDTO:
        """Full artist detail when enabled; degrades to the embedded ref on failure."""
        if not self.options.fetch_artist_details or ref.is_detailed:
            return ref
        if ref.external_id in cache:
            return cache[ref.external_id]
        try:
            detail = await self._catalog.get_artist(ref.external_id)
        except ConfigurationError:
            raise
        except Exception as e:
            # Falls back to the embedded reference; only credential errors abort the run.
            logger.warning(
                f"Artist detail unavailable for {ref.name}, using reference: {_describe(e)}",
                extra={"artist_external_id": ref.external_id},
            )
            return ref
        cache[ref.external_id] = detail
        return detail

    async def _with_audio_features(self, release: ReleaseDTO) -> ReleaseDTO:
        if not self.options.fetch_audio_features or not release.tracks:
            return release
        try:
            features = await self._catalog.get_audio_features(
                [t.external_id for t in release.tracks]
            )
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning(
                f"Audio features unavailable for '{release.title}': {_describe(e)}",
                extra={"release_external_id": release.external_id},
            )
            return release
        tracks = [
            dataclasses.replace(t, audio_features=features.get(t.external_id))
            for t in release.tracks
        ]
        return dataclasses.replace(release, tracks=tracks)

    async def _resolve_release(
        self, release: ReleaseDTO, artists: list[ArtistDTO], label: Label
    ) -> _ReleaseOutcome:
        """Write one release and everything hanging off it in a single transaction."""
        stage = "artists"
        try:
            async with self._persistence.transaction() as uow:
                resolver = EntityResolver(uow.entities)

                artist_ids: dict[str, str] = {}
                artists_created = 0
                for artist in artists:
                    resolved = await resolver.resolve(
                        EntityKind.ARTIST, artist.external_id, artist.to_attributes()
                    )
                    artist_ids[artist.external_id] = resolved.id
                    artists_created += int(resolved.created)

                stage = "release"
                resolved_release = await resolver.resolve(
                    EntityKind.RELEASE,
                    release.external_id,
                    release.to_attributes(label_id=label.id),
                )
                release_artist_ids = [artist_ids[a.external_id] for a in release.artists]
                await resolver.link_artists(
                    EntityKind.RELEASE, resolved_release.id, release_artist_ids
                )

                stage = "tracks"
                tracks_created = 0
                for track in release.tracks:
                    tracks_created += await self._resolve_track(
                        resolver, track, resolved_release.id, artist_ids, release_artist_ids
                    )
                stage = "commit"
        except Exception as e:
            raise _StageFailure(stage, e) from e

        return _ReleaseOutcome(
            artists=len(artist_ids),
            tracks=len(release.tracks),
            release_created=resolved_release.created,
            artists_created=artists_created,
            tracks_created=tracks_created,
        )

    async def _resolve_track(
        self,
        resolver: EntityResolver,
        track: TrackDTO,
        release_id: str,
        artist_ids: dict[str, str],
        fallback_artist_ids: list[str],
    ) -> int:
        attributes = track.to_attributes()
        attributes["release_id"] = release_id
        resolved = await resolver.resolve(EntityKind.TRACK, track.external_id, attributes)
        track_artist_ids = [
            artist_ids[a.external_id] for a in track.artists if a.external_id in artist_ids
        ] or fallback_artist_ids
        await resolver.link_artists(EntityKind.TRACK, resolved.id, track_artist_ids)
        return int(resolved.created)

    def _record_failure(
        self, run: ImportRun, release: ReleaseDTO, stage: str, cause: Exception
    ) -> None:
        message = _describe(cause)
        error = PartialImportError(
            message,
            release_external_id=release.external_id,
            stage=stage,
            release_title=release.title,
            cause=cause,
        )
        run.record_error(error.to_dict())
        logger.warning(
            f"Release '{release.title}' failed at {stage}: {message}",
            extra={"release_external_id": release.external_id, "stage": stage},
        )
