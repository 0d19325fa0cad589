"""Label taxonomies and the classification rule table.

Hey future me - EVERYTHING numeric about classification lives here as data: genre keyword
sets, audio-feature bounds, the 0.6/0.4 weights, the +0.1 adjustments and the tie-break
order. Nobody derived these numbers, they're calibration constants. So they are NOT literals
inside the engine; operators can ship a JSON file (classification.rules_path) and override them.

JSON shape (all keys optional except taxonomies):
    {
      "genre_weight": 0.6,
      "audio_weight": 0.4,
      "taxonomies": [
        {"key": "BUILD_IT_DEEP", "label_id": "buildit-deep",
         "genres": ["deep-house", "minimal"],
         "profile": {"energy": {"max": 0.6}, "tempo": {"min": 115, "max": 125}}}
      ],
      "adjustments": [
        {"taxonomy": "BUILD_IT_RECORDS", "delta": 0.1, "condition": "flag", "field": "explicit"},
        {"taxonomy": "BUILD_IT_DEEP", "delta": 0.1, "condition": "feature_lt",
         "field": "tempo", "value": 100}
      ],
      "tie_break_order": ["BUILD_IT_DEEP", "BUILD_IT_TECH", "BUILD_IT_RECORDS"]
    }
"""

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from labelcatalog.domain.entities import AudioFeatures
from labelcatalog.domain.exceptions import ConfigurationError

_GENRE_WHITESPACE = re.compile(r"\s+")


def normalize_genre(genre: str) -> str:
    """Lowercase, trim and turn whitespace runs into hyphens ("Deep House" -> "deep-house")."""
    return _GENRE_WHITESPACE.sub("-", genre.strip().lower())


@dataclass(frozen=True)
class FeatureBound:
    """Inclusive [min, max] bound; either side may be open."""

    min: float | None = None
    max: float | None = None

    @property
    def is_bounded(self) -> bool:
        return self.min is not None or self.max is not None

    # A missing feature value fails a bounded check.
    def contains(self, value: float | None) -> bool:
        if not self.is_bounded:
            return True
        if value is None:
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def to_dict(self) -> dict[str, float]:
        data: dict[str, float] = {}
        if self.min is not None:
            data["min"] = self.min
        if self.max is not None:
            data["max"] = self.max
        return data


@dataclass(frozen=True)
class Taxonomy:
    """One mutually exclusive content category."""

    key: str
    genres: frozenset[str]
    profile: dict[str, FeatureBound] = field(default_factory=dict)
    label_id: str | None = None

    def genre_score(self, normalized_genres: set[str]) -> float:
        """Fraction of the input genres present in this taxonomy; 0 for no input genres."""
        if not normalized_genres:
            return 0.0
        return len(normalized_genres & self.genres) / len(normalized_genres)

    def audio_match(self, features: AudioFeatures) -> bool:
        """True iff every bounded feature lies inside its bound."""
        return all(
            bound.contains(features.get(name))
            for name, bound in self.profile.items()
            if bound.is_bounded
        )


# Hey future me, three condition kinds cover every adjustment we've ever had:
#   flag        -> metadata[field] is truthy (e.g. explicit)
#   feature_lt  -> audio feature `field` present and < value (e.g. tempo < 100)
#   feature_gte -> audio feature `field` present and >= value
# Add a new kind here AND in applies() - don't sneak branches into the engine.
ADJUSTMENT_CONDITIONS = ("flag", "feature_lt", "feature_gte")


@dataclass(frozen=True)
class AdjustmentRule:
    """Add delta to a taxonomy's combined score when the condition holds."""

    taxonomy: str
    delta: float
    condition: str
    field: str
    value: float | None = None

    def applies(self, features: AudioFeatures, metadata: dict[str, Any]) -> bool:
        if self.condition == "flag":
            return bool(metadata.get(self.field))
        feature = features.get(self.field)
        if feature is None or self.value is None:
            return False
        if self.condition == "feature_lt":
            return feature < self.value
        if self.condition == "feature_gte":
            return feature >= self.value
        return False


@dataclass(frozen=True)
class RuleTable:
    """Complete, immutable classification configuration."""

    taxonomies: tuple[Taxonomy, ...]
    adjustments: tuple[AdjustmentRule, ...] = ()
    tie_break_order: tuple[str, ...] = ()
    genre_weight: float = 0.6
    audio_weight: float = 0.4

    def __post_init__(self) -> None:
        keys = [t.key for t in self.taxonomies]
        if not keys:
            raise ConfigurationError("Rule table needs at least one taxonomy")
        if len(set(keys)) != len(keys):
            raise ConfigurationError(f"Duplicate taxonomy keys in rule table: {keys}")
        for rule in self.adjustments:
            if rule.taxonomy not in keys:
                raise ConfigurationError(
                    f"Adjustment targets unknown taxonomy {rule.taxonomy!r}"
                )
            if rule.condition not in ADJUSTMENT_CONDITIONS:
                raise ConfigurationError(
                    f"Unknown adjustment condition {rule.condition!r}"
                )
        unknown = [key for key in self.tie_break_order if key not in keys]
        if unknown:
            raise ConfigurationError(f"Tie-break order names unknown taxonomies: {unknown}")

    @property
    def effective_tie_break_order(self) -> tuple[str, ...]:
        """Configured order, then any remaining taxonomies in enumeration order."""
        listed = list(self.tie_break_order)
        return tuple(listed + [t.key for t in self.taxonomies if t.key not in listed])

    def get(self, key: str) -> Taxonomy | None:
        for taxonomy in self.taxonomies:
            if taxonomy.key == key:
                return taxonomy
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "genre_weight": self.genre_weight,
            "audio_weight": self.audio_weight,
            "taxonomies": [
                {
                    "key": t.key,
                    "label_id": t.label_id,
                    "genres": sorted(t.genres),
                    "profile": {name: b.to_dict() for name, b in t.profile.items()},
                }
                for t in self.taxonomies
            ],
            "adjustments": [
                {
                    "taxonomy": r.taxonomy,
                    "delta": r.delta,
                    "condition": r.condition,
                    "field": r.field,
                    "value": r.value,
                }
                for r in self.adjustments
            ],
            "tie_break_order": list(self.effective_tie_break_order),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RuleTable":
        try:
            taxonomies = tuple(
                Taxonomy(
                    key=item["key"],
                    label_id=item.get("label_id"),
                    genres=frozenset(normalize_genre(g) for g in item.get("genres", [])),
                    profile={
                        name: FeatureBound(min=bound.get("min"), max=bound.get("max"))
                        for name, bound in item.get("profile", {}).items()
                    },
                )
                for item in data["taxonomies"]
            )
            adjustments = tuple(
                AdjustmentRule(
                    taxonomy=item["taxonomy"],
                    delta=float(item["delta"]),
                    condition=item["condition"],
                    field=item["field"],
                    value=item.get("value"),
                )
                for item in data.get("adjustments", [])
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ConfigurationError(f"Invalid classification rule table: {e}") from e

        return cls(
            taxonomies=taxonomies,
            adjustments=adjustments,
            tie_break_order=tuple(data.get("tie_break_order", ())),
            genre_weight=float(data.get("genre_weight", 0.6)),
            audio_weight=float(data.get("audio_weight", 0.4)),
        )


def load_rule_table(path: str | Path | None) -> RuleTable:
    """Rule table from a JSON file, or the built-in defaults when path is None."""
    if path is None:
        return DEFAULT_RULE_TABLE
    try:
        raw = Path(path).read_text(encoding="utf-8")
        data = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot load classification rules from {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Classification rules in {path} must be a JSON object")
    return RuleTable.from_dict(data)


# =============================================================================
# DEFAULT TABLE
# Build It Records is the catch-all "band" label, Tech the club electronic one, Deep the
# deep/minimal one. Order of this tuple IS the default tie-break order.
# =============================================================================

DEFAULT_RULE_TABLE = RuleTable(
    taxonomies=(
        Taxonomy(
            key="BUILD_IT_DEEP",
            label_id="buildit-deep",
            genres=frozenset(
                {
                    "deep-house",
                    "tech-house",
                    "minimal-techno",
                    "progressive-house",
                    "ambient-techno",
                    "dub-techno",
                    "detroit-techno",
                    "acid-house",
                    "minimal",
                    "deep-tech",
                    "microhouse",
                    "dub",
                    "experimental",
                }
            ),
            profile={
                "energy": FeatureBound(max=0.6),
                "instrumentalness": FeatureBound(min=0.4),
                "acousticness": FeatureBound(max=0.3),
                "valence": FeatureBound(max=0.6),
                "tempo": FeatureBound(min=115, max=125),
            },
        ),
        Taxonomy(
            key="BUILD_IT_TECH",
            label_id="buildit-tech",
            genres=frozenset(
                {
                    "electronic",
                    "techno",
                    "house",
                    "dance",
                    "edm",
                    "dubstep",
                    "drum-and-bass",
                    "electro",
                    "trance",
                    "breakbeat",
                    "garage",
                    "industrial",
                    "synthwave",
                    "electronica",
                }
            ),
            profile={
                "energy": FeatureBound(min=0.6),
                "instrumentalness": FeatureBound(min=0.3),
                "acousticness": FeatureBound(max=0.4),
                "tempo": FeatureBound(min=120),
            },
        ),
        Taxonomy(
            key="BUILD_IT_RECORDS",
            label_id="buildit-records",
            genres=frozenset(
                {
                    "pop",
                    "rock",
                    "indie",
                    "alternative",
                    "punk",
                    "metal",
                    "folk",
                    "singer-songwriter",
                    "reggae",
                    "world-music",
                    "jazz",
                    "blues",
                    "soul",
                    "r-n-b",
                    "hip-hop",
                    "rap",
                }
            ),
            profile={
                "speechiness": FeatureBound(min=0.1),
                "acousticness": FeatureBound(min=0.2),
            },
        ),
    ),
    adjustments=(
        AdjustmentRule(
            taxonomy="BUILD_IT_RECORDS", delta=0.1, condition="flag", field="explicit"
        ),
        AdjustmentRule(
            taxonomy="BUILD_IT_DEEP",
            delta=0.1,
            condition="feature_lt",
            field="tempo",
            value=100,
        ),
    ),
    tie_break_order=("BUILD_IT_DEEP", "BUILD_IT_TECH", "BUILD_IT_RECORDS"),
)
