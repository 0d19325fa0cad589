"""Domain value objects."""

from labelcatalog.domain.value_objects.label_matching import (
    LabelAliasTable,
    LabelMatcher,
    label_matches,
    normalize_label_name,
)
from labelcatalog.domain.value_objects.taxonomy import (
    DEFAULT_RULE_TABLE,
    AdjustmentRule,
    FeatureBound,
    RuleTable,
    Taxonomy,
    load_rule_table,
    normalize_genre,
)

__all__ = [
    "LabelAliasTable",
    "LabelMatcher",
    "label_matches",
    "normalize_label_name",
    "DEFAULT_RULE_TABLE",
    "AdjustmentRule",
    "FeatureBound",
    "RuleTable",
    "Taxonomy",
    "load_rule_table",
    "normalize_genre",
]
