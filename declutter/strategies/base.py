"""Shared contract for automatic pruning strategies.

A strategy is a pure function over session metadata and the not-yet-pruned
identifier list. It never touches request bodies and never does I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..state import ToolCallMetadata

if TYPE_CHECKING:
    from ..config import DeclutterConfig

logger = logging.getLogger(__name__)


@dataclass
class StrategyResult:
    """Identifiers a strategy wants pruned.

    Attributes:
        prune_output_ids: Replace the tool result content.
        prune_input_ids: Replace the invocation arguments.
    """

    prune_output_ids: list[str] = field(default_factory=list)
    prune_input_ids: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.prune_output_ids or self.prune_input_ids)

    def merge(self, other: StrategyResult) -> None:
        """Union another result into this one, keeping first-seen order."""
        for source, target in (
            (other.prune_output_ids, self.prune_output_ids),
            (other.prune_input_ids, self.prune_input_ids),
        ):
            for call_id in source:
                if call_id not in target:
                    target.append(call_id)


@runtime_checkable
class PruningStrategy(Protocol):
    """Contract every automatic strategy satisfies."""

    name: str

    def detect(
        self,
        metadata: Mapping[str, ToolCallMetadata],
        unpruned_ids: Sequence[str],
        protected_tools: Iterable[str],
        config: DeclutterConfig,
    ) -> StrategyResult:
        ...


def run_strategies(
    strategies: Iterable[PruningStrategy],
    metadata: Mapping[str, ToolCallMetadata],
    unpruned_ids: Sequence[str],
    config: DeclutterConfig,
) -> StrategyResult:
    """Run every enabled strategy and union their decisions."""
    combined = StrategyResult()
    if not unpruned_ids:
        return combined

    protected = frozenset(config.protected_tools)
    for strategy in strategies:
        if not config.strategies.is_enabled(strategy.name):
            logger.debug("Strategy %s disabled, skipping", strategy.name)
            continue
        result = strategy.detect(metadata, unpruned_ids, protected, config)
        if result:
            logger.debug(
                "Strategy %s: %d outputs, %d inputs to prune",
                strategy.name,
                len(result.prune_output_ids),
                len(result.prune_input_ids),
            )
        combined.merge(result)
    return combined
