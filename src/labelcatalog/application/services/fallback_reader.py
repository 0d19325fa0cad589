"""
FallbackQueryReconciler - ordered read strategies with a first-success combinator.

Hey future me - this replaced the old nested try/except read paths! A chain is just an ordered
tuple of named strategies. _first_success() walks it strictly in order (never in parallel) and
returns a tagged result: Success(data, source) or Exhausted(attempts). fetch() turns that into
a FallbackResult or a TYPED error. Callers never see the raw exception of an inner strategy.

Rules:
- a strategy is tried only if every previous one raised or came back empty (None, [], {})
- list chains end with a placeholder strategy, so they always render something
- single-entity chains have no placeholder: clean "nothing there" means NotFoundError
- every strategy raised (no clean empty at all) means SourceExhausted
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from labelcatalog.domain.exceptions import (
    EntityNotFoundException,
    SourceExhausted,
    ValidationError,
)
from labelcatalog.infrastructure.observability.logger_template import log_slow_operation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadStrategy:
    """One named way of reading an entity (or entity list) by key."""

    name: str
    fetch: Callable[[Any], Awaitable[Any]]
    is_placeholder: bool = False


@dataclass(frozen=True)
class ReadChain:
    strategies: tuple[ReadStrategy, ...]
    single_entity: bool = False


@dataclass(frozen=True)
class Attempt:
    strategy: str
    outcome: str  # "success" | "empty" | "error"
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"strategy": self.strategy, "outcome": self.outcome}
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class Success:
    data: Any
    source: str
    attempts: tuple[Attempt, ...]


@dataclass(frozen=True)
class Exhausted:
    attempts: tuple[Attempt, ...]

    @property
    def all_failed(self) -> bool:
        """True when no strategy returned cleanly (every one raised)."""
        return bool(self.attempts) and all(a.outcome == "error" for a in self.attempts)


@dataclass
class FallbackResult:
    """Data plus provenance: meta["source"] names the strategy that produced it."""

    data: Any
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str:
        return str(self.meta.get("source"))

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "meta": dict(self.meta)}


def is_empty(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, list | tuple | dict | set):
        return len(data) == 0
    return False


async def _first_success(
    strategies: tuple[ReadStrategy, ...] | list[ReadStrategy], key: Any
) -> Success | Exhausted:
    attempts: list[Attempt] = []
    for strategy in strategies:
        start = time.perf_counter()
        try:
            data = await strategy.fetch(key)
        except Exception as e:
            # Recorded in attempts; fetch() raises SourceExhausted if every strategy fails.
            logger.warning(
                f"Read strategy '{strategy.name}' failed: {type(e).__name__}: {e}",
                extra={"strategy": strategy.name, "key": str(key)},
            )
            attempts.append(Attempt(strategy.name, "error", f"{type(e).__name__}: {e}"))
            continue
        finally:
            log_slow_operation(
                logger,
                f"read_strategy.{strategy.name}",
                int((time.perf_counter() - start) * 1000),
                key=str(key),
            )

        # A placeholder's output counts even when it is an empty list.
        if is_empty(data) and not strategy.is_placeholder:
            logger.debug(f"Read strategy '{strategy.name}' returned nothing for {key}")
            attempts.append(Attempt(strategy.name, "empty"))
            continue

        attempts.append(Attempt(strategy.name, "success"))
        return Success(data=data, source=strategy.name, attempts=tuple(attempts))

    return Exhausted(attempts=tuple(attempts))


class FallbackQueryReconciler:
    """Serves fetch(entity_type, key) from registered read chains."""

    def __init__(self, chains: dict[str, ReadChain] | None = None) -> None:
        self._chains: dict[str, ReadChain] = dict(chains or {})

    def register(self, entity_type: str, chain: ReadChain) -> None:
        self._chains[entity_type] = chain

    @property
    def entity_types(self) -> list[str]:
        return sorted(self._chains)

    async def fetch(
        self,
        entity_type: str,
        key: Any,
        strategies: list[ReadStrategy] | None = None,
        single_entity: bool | None = None,
    ) -> FallbackResult:
        """Evaluate a chain and return the first non-empty result with its source.

        Args:
            entity_type: Registered chain name ("releases", "release", ...)
            key: Lookup key (label id, release id, ...)
            strategies: Ad-hoc strategy list overriding the registered chain
            single_entity: Override for ad-hoc chains (default: registered
                chain's flag, False when unregistered)

        Raises:
            ValidationError: empty key or unknown entity type
            NotFoundError: single-entity chain found nothing
            SourceExhausted: every strategy raised
        """
        if key is None or (isinstance(key, str) and not key.strip()):
            raise ValidationError(f"{entity_type} key must not be empty")

        chain = self._chains.get(entity_type)
        if strategies is None:
            if chain is None:
                raise ValidationError(
                    f"Unknown entity type {entity_type!r}; "
                    f"expected one of {', '.join(self.entity_types)}"
                )
            strategies = list(chain.strategies)
        if single_entity is None:
            single_entity = chain.single_entity if chain is not None else False

        outcome = await _first_success(strategies, key)
        if isinstance(outcome, Success):
            return FallbackResult(
                data=outcome.data,
                meta={
                    "source": outcome.source,
                    "attempts": [a.to_dict() for a in outcome.attempts],
                },
            )

        if outcome.all_failed or not outcome.attempts:
            raise SourceExhausted(
                entity_type,
                key,
                attempts=[(a.strategy, a.error or "") for a in outcome.attempts],
            )
        if single_entity:
            raise EntityNotFoundException(entity_type, key)
        # List chain without placeholder that only found nothing.
        return FallbackResult(
            data=[],
            meta={"source": None, "attempts": [a.to_dict() for a in outcome.attempts]},
        )
