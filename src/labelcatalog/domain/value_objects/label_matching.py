"""Label name matching for catalog imports.

Hey future me - the external catalog does NOT normalize label names! The same label shows up
as "Build It Tech", "BuildIt Tech", "Build-It Tech" and sometimes "Build It Tech Records".
So matching is deliberately LOOSE: strip case, whitespace and hyphens, then accept if either
normalized string contains the other. That's a heuristic, not equality - it will happily match
"Tech" against "Build It Tech". Keep targets specific (full display names), never short words.

Examples:
    >>> label_matches("Build-It Tech", "Build It Tech")
    True
    >>> label_matches("Tech House Records", "Build It Tech")
    False
    >>> label_matches("", "Build It Tech")
    False
"""

import re
from collections.abc import Iterable

from labelcatalog.domain.entities import Label

_STRIP_PATTERN = re.compile(r"[-\s]+")


def normalize_label_name(name: str | None) -> str:
    """Lowercase and drop all whitespace and hyphens."""
    if not name:
        return ""
    return _STRIP_PATTERN.sub("", name.lower())


def label_matches(candidate: str | None, target_display_name: str | None) -> bool:
    """Bidirectional substring match on normalized names.

    An empty or missing candidate never matches, and neither does an empty target.
    """
    normalized_candidate = normalize_label_name(candidate)
    normalized_target = normalize_label_name(target_display_name)
    if not normalized_candidate or not normalized_target:
        return False
    return (
        normalized_target in normalized_candidate
        or normalized_candidate in normalized_target
    )


class LabelMatcher:
    """Callable wrapper so services can take the matcher as a dependency."""

    def matches(self, candidate: str | None, target_display_name: str | None) -> bool:
        return label_matches(candidate, target_display_name)


# Yo, the alias table replaces the old inline "if label string == X then id = Y" branches.
# It's pure data: every label contributes its display name and all its variants, normalized.
# Lookup is EXACT on the normalized form (no substring games here), so it only ever resolves
# strings we explicitly know about. First label wins on a collision; collisions are logged by
# the caller building the table if it cares.
class LabelAliasTable:
    """Normalized alias -> label id lookup."""

    def __init__(self, aliases: dict[str, str] | None = None) -> None:
        self._aliases: dict[str, str] = {}
        for alias, label_id in (aliases or {}).items():
            self.add(alias, label_id)

    @classmethod
    def from_labels(cls, labels: Iterable[Label]) -> "LabelAliasTable":
        table = cls()
        for label in labels:
            for term in label.search_terms:
                table.add(term, label.id)
        return table

    def add(self, alias: str, label_id: str) -> None:
        key = normalize_label_name(alias)
        if key and key not in self._aliases:
            self._aliases[key] = label_id

    def resolve(self, label_string: str | None) -> str | None:
        """Label id for a catalog label string, or None if unknown."""
        key = normalize_label_name(label_string)
        if not key:
            return None
        return self._aliases.get(key)

    def __len__(self) -> int:
        return len(self._aliases)

    def __contains__(self, label_string: object) -> bool:
        return isinstance(label_string, str) and self.resolve(label_string) is not None
