"""Classifies persisted tracks that have audio features but no taxonomy yet."""

import logging
from dataclasses import dataclass, field
from typing import Any

from labelcatalog.application.services.classification_engine import ClassificationEngine
from labelcatalog.domain.entities import Classification
from labelcatalog.domain.ports import IPersistenceGateway

logger = logging.getLogger(__name__)


@dataclass
class ClassificationBatchResult:
    classified: int = 0
    by_taxonomy: dict[str, int] = field(default_factory=dict)
    results: list[Classification] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "classified": self.classified,
            "by_taxonomy": dict(self.by_taxonomy),
            "results": [r.to_dict() for r in self.results],
        }


class TrackClassificationService:
    """Runs the ClassificationEngine over untagged tracks in one transaction.

    Genres come from the track's artists (tracks carry no genres of their own);
    the explicit flag is passed as metadata for the adjustment rules.
    """

    def __init__(
        self, persistence: IPersistenceGateway, engine: ClassificationEngine
    ) -> None:
        self._persistence = persistence
        self._engine = engine

    async def classify_untagged(self, limit: int = 100) -> ClassificationBatchResult:
        result = ClassificationBatchResult()
        async with self._persistence.transaction() as uow:
            candidates = await uow.entities.list_unclassified_tracks(limit=limit)
            for track, genres in candidates:
                classification = self._engine.classify(
                    genres,
                    track.audio_features,
                    {"explicit": track.explicit},
                )
                await uow.entities.set_track_classification(
                    track.id, classification.label, classification.confidence
                )
                result.classified += 1
                result.by_taxonomy[classification.label] = (
                    result.by_taxonomy.get(classification.label, 0) + 1
                )
                result.results.append(
                    Classification(
                        label=classification.label,
                        confidence=classification.confidence,
                        scores=classification.scores,
                        track_id=track.id,
                    )
                )

        logger.info(
            f"Classified {result.classified} track(s)",
            extra={"by_taxonomy": result.by_taxonomy},
        )
        return result
