"""Tests for ClassificationEngine."""

import pytest

from labelcatalog.application.services.classification_engine import ClassificationEngine
from labelcatalog.domain.entities import AudioFeatures
from labelcatalog.domain.value_objects.taxonomy import (
    AdjustmentRule,
    RuleTable,
    Taxonomy,
)

DEEP_PROFILE_FEATURES = AudioFeatures(
    energy=0.5,
    tempo=120.0,
    instrumentalness=0.8,
    acousticness=0.1,
    valence=0.3,
)


@pytest.fixture
def engine() -> ClassificationEngine:
    return ClassificationEngine()


class TestClassify:
    """Scoring against the default Build It taxonomies."""

    def test_deep_genres_and_profile_score_full_marks(self, engine: ClassificationEngine) -> None:
        """Test that all-deep genres plus an in-profile track score 1.0 for DEEP."""
        result = engine.classify(["deep-house", "minimal"], DEEP_PROFILE_FEATURES)

        assert result.label == "BUILD_IT_DEEP"
        assert result.confidence == 1.0
        assert result.scores["BUILD_IT_DEEP"] == 1.0
        # Energy 0.5 fails TECH's min, RECORDS needs speechiness which is missing.
        assert result.scores["BUILD_IT_TECH"] == 0.0
        assert result.scores["BUILD_IT_RECORDS"] == 0.0

    def test_mid_instrumental_track_still_in_deep_profile(
        self, engine: ClassificationEngine
    ) -> None:
        features = AudioFeatures(
            energy=0.5,
            tempo=120.0,
            instrumentalness=0.5,
            acousticness=0.2,
            valence=0.5,
            speechiness=0.05,
        )

        result = engine.classify(["deep-house", "minimal"], features, {"explicit": False})

        assert result.label == "BUILD_IT_DEEP"
        assert result.scores["BUILD_IT_DEEP"] == 1.0

    def test_genre_spelling_is_normalized(self, engine: ClassificationEngine) -> None:
        """Test that "Deep House" counts the same as "deep-house"."""
        result = engine.classify(["Deep House", "  MINIMAL "], DEEP_PROFILE_FEATURES)
        assert result.scores["BUILD_IT_DEEP"] == 1.0

    def test_partial_genre_overlap(self, engine: ClassificationEngine) -> None:
        """Test that the genre score is the fraction of input genres in the taxonomy."""
        result = engine.classify(["techno", "pop"], {})

        assert result.scores["BUILD_IT_TECH"] == pytest.approx(0.3)
        assert result.scores["BUILD_IT_RECORDS"] == pytest.approx(0.3)
        # Equal scores: TECH is ahead of RECORDS in the tie-break order.
        assert result.label == "BUILD_IT_TECH"

    def test_empty_genres_and_features_fall_to_tie_break(self, engine: ClassificationEngine) -> None:
        """Test that an all-zero score map picks the first taxonomy in tie-break order."""
        result = engine.classify([], None)

        assert result.label == "BUILD_IT_DEEP"
        assert result.confidence == 0.0
        assert set(result.scores.values()) == {0.0}

    def test_explicit_flag_boosts_records(self, engine: ClassificationEngine) -> None:
        result = engine.classify([], None, metadata={"explicit": True})

        assert result.label == "BUILD_IT_RECORDS"
        assert result.scores["BUILD_IT_RECORDS"] == pytest.approx(0.1)

    def test_slow_tempo_boosts_deep(self, engine: ClassificationEngine) -> None:
        """Test the tempo < 100 adjustment even though the deep profile itself fails."""
        result = engine.classify([], AudioFeatures(tempo=90.0))

        assert result.label == "BUILD_IT_DEEP"
        assert result.scores["BUILD_IT_DEEP"] == pytest.approx(0.1)

    def test_accepts_feature_dict(self, engine: ClassificationEngine) -> None:
        from_dict = engine.classify(["deep-house"], DEEP_PROFILE_FEATURES.to_dict())
        from_obj = engine.classify(["deep-house"], DEEP_PROFILE_FEATURES)

        assert from_dict == from_obj

    def test_deterministic(self, engine: ClassificationEngine) -> None:
        first = engine.classify(["techno", "house"], AudioFeatures(energy=0.9, tempo=128))
        second = engine.classify(["house", "techno"], AudioFeatures(energy=0.9, tempo=128))

        assert first == second


class TestCustomRules:
    """Engine behaviour with hand-built rule tables."""

    def test_confidence_is_clamped_but_raw_score_kept(self) -> None:
        table = RuleTable(
            taxonomies=(Taxonomy(key="ONLY", genres=frozenset({"techno"})),),
            adjustments=(
                AdjustmentRule(taxonomy="ONLY", delta=0.5, condition="flag", field="boost"),
            ),
        )
        engine = ClassificationEngine(table)

        result = engine.classify(["techno"], None, metadata={"boost": True})

        # 0.6 genre + 0.4 unbounded profile + 0.5 boost
        assert result.scores["ONLY"] == pytest.approx(1.5)
        assert result.confidence == 1.0

    def test_configured_tie_break_order_wins(self) -> None:
        table = RuleTable(
            taxonomies=(
                Taxonomy(key="A", genres=frozenset()),
                Taxonomy(key="B", genres=frozenset()),
            ),
            tie_break_order=("B", "A"),
        )

        assert ClassificationEngine(table).classify(["x"]).label == "B"

    def test_partial_tie_break_order_falls_back_to_definition_order(self) -> None:
        """Test that taxonomies missing from the order still break ties deterministically."""
        taxonomies = tuple(Taxonomy(key=key, genres=frozenset()) for key in ("A", "B", "C"))
        boost_a_and_b = tuple(
            AdjustmentRule(taxonomy=key, delta=0.1, condition="flag", field="boost")
            for key in ("A", "B")
        )
        table = RuleTable(
            taxonomies=taxonomies, adjustments=boost_a_and_b, tie_break_order=("C",)
        )
        engine = ClassificationEngine(table)

        assert engine.classify([]).label == "C"
        assert engine.classify([], metadata={"boost": True}).label == "A"

    def test_feature_gte_condition(self) -> None:
        table = RuleTable(
            taxonomies=(
                Taxonomy(key="A", genres=frozenset()),
                Taxonomy(key="B", genres=frozenset()),
            ),
            adjustments=(
                AdjustmentRule(
                    taxonomy="B", delta=0.2, condition="feature_gte", field="energy", value=0.8
                ),
            ),
        )
        engine = ClassificationEngine(table)

        assert engine.classify([], AudioFeatures(energy=0.8)).label == "B"
        assert engine.classify([], AudioFeatures(energy=0.79)).label == "A"

    def test_label_id_for(self, engine: ClassificationEngine) -> None:
        assert engine.label_id_for("BUILD_IT_TECH") == "buildit-tech"
        assert engine.label_id_for("NOPE") is None
