"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from typing import Any

from labelcatalog.domain.dtos import ArtistDTO, PaginatedResponse, ReleaseDTO
from labelcatalog.domain.entities import (
    AudioFeatures,
    EntityKind,
    ImportRun,
    Label,
    Track,
)


class ICatalogService(ABC):
    """External music catalog (search, full release detail, artist detail).

    Implementations translate transport failures into ExternalServiceError and
    missing credentials into ConfigurationError.
    """

    @abstractmethod
    async def search_releases(
        self, query: str, limit: int = 50, offset: int = 0
    ) -> PaginatedResponse[ReleaseDTO]:
        """Search releases; query uses the catalog's own syntax (label:"...")."""
        pass

    @abstractmethod
    async def get_release(self, external_id: str) -> ReleaseDTO:
        """Fetch full release detail including label string and all tracks."""
        pass

    @abstractmethod
    async def get_artist(self, external_id: str) -> ArtistDTO:
        """Fetch artist detail with images, genres and popularity."""
        pass

    @abstractmethod
    async def get_audio_features(
        self, track_external_ids: list[str]
    ) -> dict[str, AudioFeatures]:
        """Audio features keyed by track external id; unknown tracks are omitted."""
        pass


class ILabelStore(ABC):
    """Read access to the known labels."""

    @abstractmethod
    async def get_label(self, label_id: str) -> Label:
        """Get a label by id.

        Raises:
            NotFoundError: label does not exist
        """
        pass

    @abstractmethod
    async def list_labels(self) -> list[Label]:
        """List all labels, ordered by id."""
        pass


# Hey future me, IEntityStore is the dumb per-kind row API. It knows nothing about
# idempotency rules - EntityResolver decides create vs update and which fields are mutable.
# Every call happens inside whatever transaction the caller opened; the store NEVER commits.
class IEntityStore(ABC):
    """Row-level access for artists, releases and tracks within one transaction."""

    @abstractmethod
    async def find_by_external_id(
        self, kind: EntityKind, external_id: str
    ) -> dict[str, Any] | None:
        """Current row as a flat dict (must include "id"), or None."""
        pass

    @abstractmethod
    async def create(
        self, kind: EntityKind, entity_id: str, external_id: str, attributes: dict[str, Any]
    ) -> None:
        """Insert a new row.

        Raises:
            PersistenceError: constraint violation
        """
        pass

    @abstractmethod
    async def update(
        self, kind: EntityKind, entity_id: str, attributes: dict[str, Any]
    ) -> None:
        """Overwrite the given columns of an existing row."""
        pass

    @abstractmethod
    async def link_artists(
        self, kind: EntityKind, entity_id: str, artist_ids: list[str]
    ) -> int:
        """Attach artists to a release or track, keeping existing links.

        Returns:
            Number of links newly added
        """
        pass

    @abstractmethod
    async def list_unclassified_tracks(
        self, limit: int = 100
    ) -> list[tuple[Track, list[str]]]:
        """Tracks with audio features but no taxonomy, with their artists' genres."""
        pass

    @abstractmethod
    async def set_track_classification(
        self, track_id: str, taxonomy: str, confidence: float
    ) -> None:
        pass


class IImportRunRepository(ABC):
    """Repository interface for ImportRun history."""

    @abstractmethod
    async def add(self, run: ImportRun) -> None:
        pass

    @abstractmethod
    async def update(self, run: ImportRun) -> None:
        pass

    @abstractmethod
    async def get(self, run_id: str) -> ImportRun | None:
        pass

    @abstractmethod
    async def list_by_label(self, label_id: str, limit: int = 20) -> list[ImportRun]:
        """Most recent first."""
        pass

    @abstractmethod
    async def list_recent(self, limit: int = 20) -> list[ImportRun]:
        """Most recent first, across all labels."""
        pass


class IUnitOfWork(ABC):
    """Stores bound to one open transaction."""

    entities: IEntityStore
    runs: IImportRunRepository


class IPersistenceGateway(ABC):
    """Transactional write scope.

    transaction() commits when the block exits normally and rolls back every
    write made inside it when the block raises.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[IUnitOfWork]:
        pass


__all__ = [
    "ICatalogService",
    "ILabelStore",
    "IEntityStore",
    "IImportRunRepository",
    "IUnitOfWork",
    "IPersistenceGateway",
]
