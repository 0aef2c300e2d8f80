"""Session-scoped pruning state.

The store keeps one SessionState per session identifier:
1. Tool call metadata, keyed by lowercased call id
2. The pruned identifier sets (monotonic, append-only)
3. Running savings counters

Every session has its own lock, so the per-request path and the
idle-triggered janitor serialize on the same session without blocking
unrelated sessions.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from ..exceptions import StateError
from .models import (
    SessionSnapshot,
    SessionState,
    SessionStats,
    ToolStatus,
    normalize_id,
)

logger = logging.getLogger(__name__)


class SessionStateStore:
    """Thread-safe, per-session pruning state.

    Sessions are created on first touch and only removed by clear(). A
    session's lock outlives clear(), so threads already waiting on it and
    later callers always serialize on the same lock.

    Usage:
        store = SessionStateStore()

        store.record_tool_call("ses_1", "call_A", "read", {"path": "a.py"})
        store.update_status("ses_1", "call_A", ToolStatus.COMPLETED)
        store.mark_pruned("ses_1", ["call_A"])

        assert store.is_pruned("ses_1", "CALL_A")

        # Multi-step read-modify-write under the session lock
        with store.session("ses_1") as state:
            ids = state.unpruned_ids()
    """

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, session_id: str) -> threading.RLock:
        if not session_id:
            raise StateError("Session id must be a non-empty string")
        with self._registry_lock:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[session_id] = lock
            return lock

    def _state_for(self, session_id: str) -> SessionState:
        # Caller holds the session lock
        state = self._sessions.get(session_id)
        if state is None:
            state = SessionState(session_id=session_id)
            with self._registry_lock:
                self._sessions[session_id] = state
            logger.debug("Created pruning state for session %s", session_id)
        return state

    @contextmanager
    def session(self, session_id: str, create: bool = True) -> Iterator[SessionState | None]:
        """Hold the session lock and yield the live SessionState.

        With ``create=False`` an unknown (or cleared) session yields None
        instead of being created.

        Do not keep the yielded object past the ``with`` block.
        """
        with self._lock_for(session_id):
            if create:
                yield self._state_for(session_id)
            else:
                yield self._sessions.get(session_id)

    def get(self, session_id: str) -> SessionSnapshot:
        """Get a read-only snapshot of a session."""
        with self.session(session_id) as state:
            return state.snapshot()

    def record_tool_call(
        self,
        session_id: str,
        call_id: str,
        tool_name: str,
        parameters: dict[str, Any] | None = None,
    ) -> None:
        """Record (or refresh) an invocation's name and parameters."""
        with self.session(session_id) as state:
            state.observe_tool_call(call_id, tool_name, parameters)

    def update_status(
        self,
        session_id: str,
        call_id: str,
        status: ToolStatus | str,
        error: str | None = None,
    ) -> None:
        """Update the status of an invocation.

        Raises:
            StateError: If status is not a known ToolStatus value.
        """
        try:
            status = ToolStatus(status)
        except ValueError as e:
            raise StateError("Unknown tool status", details={"status": status}) from e
        with self.session(session_id) as state:
            state.observe_result(call_id, status, error_message=error)

    def mark_pruned(
        self,
        session_id: str,
        call_ids: Iterable[str],
        *,
        inputs: bool = False,
    ) -> list[str]:
        """Add identifiers to the pruned set.

        Args:
            session_id: Session to update.
            call_ids: Identifiers to prune. Unknown identifiers are ignored.
            inputs: Add to the input-pruned set instead of the output-pruned set.

        Returns:
            The identifiers that were newly added, in the given order.
        """
        with self.session(session_id) as state:
            return mark_pruned(state, call_ids, inputs=inputs)

    def is_pruned(self, session_id: str, call_id: str) -> bool:
        with self.session(session_id) as state:
            return state.is_pruned(call_id)

    def stats(self, session_id: str) -> SessionStats:
        with self.session(session_id) as state:
            return replace(state.stats)

    def record_savings(self, session_id: str, tools: int, tokens: int) -> None:
        """Add to the session's savings counters."""
        with self.session(session_id) as state:
            record_savings(state, tools, tokens)

    def record_compaction(self, session_id: str, timestamp: float) -> None:
        """Remember that host history up to ``timestamp`` was compacted."""
        with self.session(session_id) as state:
            if state.last_compaction is None or timestamp > state.last_compaction:
                state.last_compaction = timestamp

    def clear(self, session_id: str) -> bool:
        """Drop all state for a session. Returns False if it did not exist."""
        with self._lock_for(session_id), self._registry_lock:
            removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.debug("Cleared pruning state for session %s", session_id)
        return removed

    def reset_nudge_counter(self, session_id: str) -> None:
        """Restart the count of tool results since the last reminder."""
        with self.session(session_id) as state:
            state.results_since_nudge = 0

    def sessions(self) -> list[str]:
        """Identifiers of all live sessions."""
        with self._registry_lock:
            return list(self._sessions)


def mark_pruned(state: SessionState, call_ids: Iterable[str], *, inputs: bool = False) -> list[str]:
    """Union ``call_ids`` into a session's pruned set. Caller holds the lock."""
    target = state.pruned_input_ids if inputs else state.pruned_ids
    added: list[str] = []
    for call_id in call_ids:
        key = normalize_id(call_id)
        if key not in state.tool_calls:
            logger.debug("Ignoring prune of unknown id %s in session %s", key, state.session_id)
            continue
        if key in target:
            continue
        target.add(key)
        added.append(key)
    return added


def record_savings(state: SessionState, tools: int, tokens: int) -> None:
    """Add to the savings counters. Caller holds the lock."""
    state.stats.total_tools_pruned += tools
    state.stats.total_tokens_saved += tokens
    state.stats.last_prune_count = tools


# Global store instance
_session_store: SessionStateStore | None = None
_store_lock = threading.Lock()


def get_session_store() -> SessionStateStore:
    """Get the global session state store."""
    global _session_store
    if _session_store is None:
        with _store_lock:
            if _session_store is None:
                _session_store = SessionStateStore()
    return _session_store


def reset_session_store() -> None:
    """Reset the global session state store (for testing)."""
    global _session_store
    with _store_lock:
        _session_store = None
