"""In-place pruning of the host's structured message representation.

Uses the same pruned set as the request interceptor, so both surfaces
agree on what has been removed.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import DeclutterConfig
from .host import iter_tool_parts, part_call_id, part_state
from .state import SessionStateStore, get_session_store

logger = logging.getLogger(__name__)

# Edit tools keep their input structure; only these content fields are replaced
EDIT_TOOL_FIELDS: dict[str, tuple[str, ...]] = {
    "write": ("content",),
    "edit": ("oldString", "newString"),
}


def is_compacted(message: dict[str, Any], last_compaction: float | None) -> bool:
    """True if a message belongs to an already summarized region of history."""
    info = message.get("info")
    if not isinstance(info, dict):
        return False
    if info.get("compacted"):
        return True
    if last_compaction is None:
        return False
    created = (info.get("time") or {}).get("created")
    return isinstance(created, (int, float)) and created <= last_compaction


def _replace(mapping: dict[str, Any], key: str, value: str) -> bool:
    if key not in mapping or mapping[key] == value:
        return False
    mapping[key] = value
    return True


class StructuralMutator:
    """Applies the pruned set to host messages.

    For each tool part:
    - pruned and completed: output replaced, or for write/edit only the
      content fields of the input
    - error status: every string input value replaced, pruned or not
    """

    def __init__(
        self,
        store: SessionStateStore | None = None,
        config: DeclutterConfig | None = None,
    ):
        self.store = store or get_session_store()
        self.config = config or DeclutterConfig()

    def prune_messages(self, session_id: str, messages: list[dict[str, Any]]) -> int:
        """Rewrite ``messages`` in place. Returns the number of parts changed."""
        with self.store.session(session_id) as state:
            state.redaction_markers.update(self.config.placeholders.texts())
            last_compaction = state.last_compaction
            live = [
                msg
                for msg in messages
                if isinstance(msg, dict) and not is_compacted(msg, last_compaction)
            ]
            changed = sum(
                1
                for part in iter_tool_parts(live)
                if self._prune_part(part, state.is_pruned(part_call_id(part)))
            )

        if changed:
            logger.debug("Pruned %d host tool parts in session %s", changed, session_id)
        return changed

    def _prune_part(self, part: dict[str, Any], pruned: bool) -> bool:
        placeholders = self.config.placeholders
        tool_state = part_state(part)
        status = tool_state.get("status")
        tool_input = tool_state.get("input")
        changed = False

        if status == "completed" and pruned:
            edit_fields = EDIT_TOOL_FIELDS.get(part.get("tool") or "")
            if edit_fields is None:
                changed = _replace(tool_state, "output", placeholders.output)
            elif isinstance(tool_input, dict):
                for key in edit_fields:
                    changed = _replace(tool_input, key, placeholders.edit_input) or changed

        elif status == "error" and isinstance(tool_input, dict):
            for key, value in tool_input.items():
                if isinstance(value, str) and value != placeholders.error_input:
                    tool_input[key] = placeholders.error_input
                    changed = True

        return changed
