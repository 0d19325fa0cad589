"""Classification API endpoints."""

from fastapi import APIRouter, Depends, Query

from labelcatalog.api.dependencies import (
    get_classification_engine,
    get_track_classification_service,
)
from labelcatalog.api.schemas.classification import (
    ClassificationResponse,
    ClassifyRequest,
    ClassifyTracksResponse,
)
from labelcatalog.application.services.classification_engine import ClassificationEngine
from labelcatalog.application.services.track_classification_service import (
    TrackClassificationService,
)

router = APIRouter()


@router.post("/classify")
async def classify(
    request: ClassifyRequest,
    engine: ClassificationEngine = Depends(get_classification_engine),
) -> ClassificationResponse:
    """Classify ad-hoc content (nothing is stored)."""
    features = request.audio_features.to_domain() if request.audio_features else None
    classification = engine.classify(request.genres, features, request.metadata)
    return ClassificationResponse.from_domain(
        classification, engine.label_id_for(classification.label)
    )


@router.post("/tracks")
async def classify_tracks(
    limit: int = Query(100, ge=1, le=1000),
    service: TrackClassificationService = Depends(get_track_classification_service),
    engine: ClassificationEngine = Depends(get_classification_engine),
) -> ClassifyTracksResponse:
    """Classify stored tracks that have audio features but no taxonomy yet."""
    result = await service.classify_untagged(limit=limit)
    return ClassifyTracksResponse(
        classified=result.classified,
        by_taxonomy=result.by_taxonomy,
        results=[
            ClassificationResponse.from_domain(c, engine.label_id_for(c.label))
            for c in result.results
        ],
    )


@router.get("/rules")
async def get_rules(
    engine: ClassificationEngine = Depends(get_classification_engine),
) -> dict[str, object]:
    """The active rule table (weights, taxonomies, adjustments, tie-break order)."""
    return engine.rules.to_dict()
