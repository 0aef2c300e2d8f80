"""Per-session pruning state: tool metadata, pruned ids, savings counters."""

from .models import (
    SessionSnapshot,
    SessionState,
    SessionStats,
    ToolCallMetadata,
    ToolStatus,
    is_redacted,
    normalize_id,
)
from .store import (
    SessionStateStore,
    get_session_store,
    mark_pruned,
    record_savings,
    reset_session_store,
)

__all__ = [
    "SessionSnapshot",
    "SessionState",
    "SessionStats",
    "SessionStateStore",
    "ToolCallMetadata",
    "ToolStatus",
    "get_session_store",
    "is_redacted",
    "mark_pruned",
    "normalize_id",
    "record_savings",
    "reset_session_store",
]
