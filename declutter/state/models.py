"""Data models for per-session pruning state."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..config import PlaceholderConfig


class ToolStatus(str, Enum):
    """Lifecycle status of a tool invocation."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


def normalize_id(call_id: str) -> str:
    """Normalize a tool call identifier. Providers disagree about case."""
    return call_id.lower()


def is_redacted(parameters: Mapping[str, Any] | None, markers: Iterable[str]) -> bool:
    """True if any top-level argument is placeholder text written by a pruning pass."""
    if not parameters:
        return False
    markers = frozenset(markers)
    return any(isinstance(value, str) and value in markers for value in parameters.values())


@dataclass
class ToolCallMetadata:
    """Everything known about one tool invocation."""

    tool_name: str
    parameters: dict[str, Any] = field(default_factory=dict)
    status: ToolStatus = ToolStatus.PENDING
    error_message: str | None = None
    has_error_flag: bool = False

    def copy(self) -> ToolCallMetadata:
        return replace(self, parameters=dict(self.parameters))


@dataclass
class SessionStats:
    """Running counters for one session."""

    total_tools_pruned: int = 0
    total_tokens_saved: int = 0
    total_janitor_runs: int = 0
    last_prune_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total_tools_pruned": self.total_tools_pruned,
            "total_tokens_saved": self.total_tokens_saved,
            "total_janitor_runs": self.total_janitor_runs,
            "last_prune_count": self.last_prune_count,
        }


@dataclass
class SessionState:
    """Mutable state for one session. Owned by SessionStateStore.

    ``tool_calls`` preserves insertion order, which is the chronological
    order in which identifiers were first observed.

    ``redaction_markers`` holds the placeholder texts in use. Arguments
    containing one were written by a pruning pass, not by the model, and
    never replace parameters already recorded for a call.
    """

    session_id: str
    tool_calls: dict[str, ToolCallMetadata] = field(default_factory=dict)
    pruned_ids: set[str] = field(default_factory=set)
    pruned_input_ids: set[str] = field(default_factory=set)
    stats: SessionStats = field(default_factory=SessionStats)
    last_compaction: float | None = None
    redaction_markers: set[str] = field(default_factory=lambda: set(PlaceholderConfig().texts()))
    # Nudge bookkeeping: results counted once, counter reset after each reminder
    seen_result_ids: set[str] = field(default_factory=set)
    results_since_nudge: int = 0

    def observe_tool_call(
        self,
        call_id: str,
        tool_name: str | None,
        parameters: dict[str, Any] | None = None,
    ) -> ToolCallMetadata:
        """Create or update metadata for an invocation.

        Last write per field wins, except that redacted arguments never
        overwrite parameters already on record.
        """
        key = normalize_id(call_id)
        entry = self.tool_calls.get(key)
        if entry is None:
            entry = ToolCallMetadata(tool_name=tool_name or "unknown")
            self.tool_calls[key] = entry
            if parameters is not None:
                entry.parameters = dict(parameters)
            return entry

        if tool_name:
            entry.tool_name = tool_name
        if parameters is not None and not is_redacted(parameters, self.redaction_markers):
            entry.parameters = dict(parameters)
        return entry

    def observe_result(
        self,
        call_id: str,
        status: ToolStatus,
        error_message: str | None = None,
        tool_name: str | None = None,
    ) -> ToolCallMetadata:
        """Record the outcome of an invocation."""
        key = normalize_id(call_id)
        entry = self.tool_calls.get(key)
        if entry is None:
            entry = ToolCallMetadata(tool_name=tool_name or "unknown")
            self.tool_calls[key] = entry
        elif tool_name and entry.tool_name == "unknown":
            entry.tool_name = tool_name
        entry.status = status
        if status == ToolStatus.ERROR:
            entry.has_error_flag = True
            if error_message is not None:
                entry.error_message = error_message
        return entry

    def is_pruned(self, call_id: str) -> bool:
        key = normalize_id(call_id)
        return key in self.pruned_ids or key in self.pruned_input_ids

    def unpruned_ids(self) -> list[str]:
        """Known identifiers not yet pruned, in observation order."""
        return [
            call_id
            for call_id in self.tool_calls
            if call_id not in self.pruned_ids and call_id not in self.pruned_input_ids
        ]

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            tool_calls=MappingProxyType(
                {call_id: meta.copy() for call_id, meta in self.tool_calls.items()}
            ),
            pruned_ids=frozenset(self.pruned_ids),
            pruned_input_ids=frozenset(self.pruned_input_ids),
            stats=replace(self.stats),
            last_compaction=self.last_compaction,
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only copy of a session's state at one point in time."""

    session_id: str
    tool_calls: Mapping[str, ToolCallMetadata]
    pruned_ids: frozenset[str]
    pruned_input_ids: frozenset[str]
    stats: SessionStats
    last_compaction: float | None = None

    @property
    def all_pruned_ids(self) -> frozenset[str]:
        return self.pruned_ids | self.pruned_input_ids
