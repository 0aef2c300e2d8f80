"""Input pruning for failed tool calls that have aged out of the recent window."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

from ..state import ToolCallMetadata, ToolStatus
from .base import StrategyResult

if TYPE_CHECKING:
    from ..config import DeclutterConfig


def recent_window(metadata: Mapping[str, ToolCallMetadata], size: int) -> set[str]:
    """The last ``size`` identifiers in observation order."""
    if size <= 0:
        return set()
    return set(list(metadata)[-size:])


class ErrorPruningStrategy:
    """Flag the inputs of old failed calls for removal.

    Error results are usually short and worth keeping; it is the arguments
    of the failed call (long file contents, large patches) that waste
    tokens. Calls among the last ``config.age_window`` observed are never
    touched, nor are protected tools.
    """

    name = "error_pruning"

    def detect(
        self,
        metadata: Mapping[str, ToolCallMetadata],
        unpruned_ids: Sequence[str],
        protected_tools: Iterable[str],
        config: DeclutterConfig,
    ) -> StrategyResult:
        protected = {name.lower() for name in protected_tools}
        recent = recent_window(metadata, config.age_window)

        candidates = []
        for call_id in unpruned_ids:
            if call_id in recent:
                continue
            meta = metadata.get(call_id)
            if meta is None or meta.status != ToolStatus.ERROR:
                continue
            if meta.tool_name.lower() in protected:
                continue
            candidates.append(call_id)
        return StrategyResult(prune_input_ids=candidates)
