"""Signature-based deduplication of repeated tool calls."""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from ..state import ToolCallMetadata, is_redacted
from .base import StrategyResult

if TYPE_CHECKING:
    from ..config import DeclutterConfig


def _canonical(value: Any) -> Any:
    """Drop None values recursively so {"a": 1} and {"a": 1, "b": None} match."""
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_canonical(v) for v in value]
    return value


def tool_signature(tool_name: str, parameters: Mapping[str, Any]) -> str:
    """Stable signature for a call: tool name plus sorted, canonical parameters."""
    params = json.dumps(_canonical(dict(parameters)), sort_keys=True, default=str)
    return f"{tool_name.lower()}::{params}"


class DeduplicationStrategy:
    """Prune all but the most recent of identical tool calls.

    Two calls are identical when tool name and parameters match. "Most
    recent" is position in the not-yet-pruned list, which is chronological,
    so the last occurrence is kept. No model call is made.

    Calls whose recorded arguments are placeholder text are skipped: two
    different redacted calls would otherwise look identical.
    """

    name = "deduplication"

    def detect(
        self,
        metadata: Mapping[str, ToolCallMetadata],
        unpruned_ids: Sequence[str],
        protected_tools: Iterable[str],
        config: DeclutterConfig,
    ) -> StrategyResult:
        protected = {name.lower() for name in protected_tools}
        markers = config.placeholders.texts()
        groups: dict[str, list[str]] = defaultdict(list)

        for call_id in unpruned_ids:
            meta = metadata.get(call_id)
            if meta is None or meta.tool_name.lower() in protected:
                continue
            if is_redacted(meta.parameters, markers):
                continue
            groups[tool_signature(meta.tool_name, meta.parameters)].append(call_id)

        duplicates = [
            call_id for members in groups.values() if len(members) > 1 for call_id in members[:-1]
        ]
        # Report in chronological order
        order = {call_id: i for i, call_id in enumerate(unpruned_ids)}
        duplicates.sort(key=order.__getitem__)
        return StrategyResult(prune_output_ids=duplicates)
