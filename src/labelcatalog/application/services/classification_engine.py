"""ClassificationEngine - weighted genre/audio heuristic over label taxonomies.

Pure and deterministic: same inputs and same rule table always give the same
Classification, including the full per-taxonomy score map.

Algorithm per taxonomy:
    genre_score = |genres ∩ taxonomy.genres| / |genres|   (0 when genres is empty)
    audio_match = every bounded feature inside its bound  (missing feature -> no match)
    combined    = genre_score * genre_weight + (audio_weight if audio_match else 0)
    combined   += delta of every adjustment rule whose condition holds

The winner is the maximum combined score; ties go to the taxonomy listed first
in the rule table's tie-break order.
"""

import logging
from collections.abc import Iterable
from typing import Any

from labelcatalog.domain.entities import AudioFeatures, Classification
from labelcatalog.domain.value_objects.taxonomy import (
    DEFAULT_RULE_TABLE,
    RuleTable,
    normalize_genre,
)

logger = logging.getLogger(__name__)

# Scores are rounded so float noise (0.1 + 0.2 style) can't break ties or equality checks.
SCORE_PRECISION = 6


class ClassificationEngine:
    """Scores content against every taxonomy in a rule table."""

    def __init__(self, rules: RuleTable | None = None) -> None:
        self.rules = rules or DEFAULT_RULE_TABLE

    def classify(
        self,
        genres: Iterable[str] | None,
        audio_features: AudioFeatures | dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Classification:
        """Classify one item.

        Args:
            genres: Genre tags in any spelling ("Deep House", "deep-house")
            audio_features: Feature vector; missing features are None
            metadata: Extra flags used by adjustment rules (e.g. {"explicit": True})

        Returns:
            Classification with the winning taxonomy key, its confidence
            (combined score clamped to [0, 1]) and the raw score map.
        """
        features = (
            audio_features
            if isinstance(audio_features, AudioFeatures)
            else AudioFeatures.from_dict(audio_features)
        )
        meta = metadata or {}
        normalized = {normalize_genre(g) for g in genres or () if g and g.strip()}

        scores: dict[str, float] = {}
        for taxonomy in self.rules.taxonomies:
            score = taxonomy.genre_score(normalized) * self.rules.genre_weight
            if taxonomy.audio_match(features):
                score += self.rules.audio_weight
            scores[taxonomy.key] = score

        for rule in self.rules.adjustments:
            if rule.applies(features, meta):
                scores[rule.taxonomy] += rule.delta

        scores = {key: round(value, SCORE_PRECISION) for key, value in scores.items()}
        winner = self._pick_winner(scores)
        confidence = min(1.0, max(0.0, scores[winner]))

        logger.debug(
            f"Classified as {winner} ({confidence:.2f})",
            extra={"scores": scores, "genres": sorted(normalized)},
        )
        return Classification(label=winner, confidence=confidence, scores=scores)

    def _pick_winner(self, scores: dict[str, float]) -> str:
        # The effective order lists every taxonomy, so some key always holds the max.
        best = max(scores.values())
        return next(k for k in self.rules.effective_tie_break_order if scores[k] == best)

    def label_id_for(self, taxonomy_key: str) -> str | None:
        """Internal label id mapped to a taxonomy key, if configured."""
        taxonomy = self.rules.get(taxonomy_key)
        return taxonomy.label_id if taxonomy else None
