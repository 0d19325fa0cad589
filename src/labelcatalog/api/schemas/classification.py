"""API schemas for classification."""

from typing import Any

from pydantic import BaseModel, Field

from labelcatalog.domain.entities import AudioFeatures, Classification


class AudioFeaturesPayload(BaseModel):
    """Optional acoustic descriptors; leave a feature out when unknown."""

    energy: float | None = None
    tempo: float | None = None
    instrumentalness: float | None = None
    acousticness: float | None = None
    valence: float | None = None
    speechiness: float | None = None
    danceability: float | None = None

    def to_domain(self) -> AudioFeatures:
        return AudioFeatures(**self.model_dump())


class ClassifyRequest(BaseModel):
    genres: list[str] = Field(default_factory=list, description="Genre tags, any spelling")
    audio_features: AudioFeaturesPayload | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict, description='Flags for adjustment rules, e.g. {"explicit": true}'
    )


class ClassificationResponse(BaseModel):
    label: str = Field(description="Winning taxonomy key")
    label_id: str | None = Field(default=None, description="Internal label mapped to it")
    confidence: float = Field(ge=0.0, le=1.0)
    scores: dict[str, float]
    track_id: str | None = None

    @classmethod
    def from_domain(
        cls, classification: Classification, label_id: str | None = None
    ) -> "ClassificationResponse":
        return cls(
            label=classification.label,
            label_id=label_id,
            confidence=classification.confidence,
            scores=dict(classification.scores),
            track_id=classification.track_id,
        )


class ClassifyTracksResponse(BaseModel):
    classified: int
    by_taxonomy: dict[str, int]
    results: list[ClassificationResponse]
