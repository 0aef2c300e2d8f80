"""Shared contract and helpers for wire-format descriptors.

Every provider protocol encodes the same three things with different field
names: an assistant tool invocation, a tool result, and a plain turn. A
FormatDescriptor knows one protocol's shapes and nothing about *what* to
prune; that decision lives in the strategies.

Descriptors are a closed set of tagged implementations picked at runtime by
their ``detect`` predicate (see registry.py). They do not share a base
class; they satisfy the FormatDescriptor protocol.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..state import SessionState, normalize_id


@dataclass(frozen=True)
class ToolResultRef:
    """A tool result present in one request body."""

    id: str
    tool_name: str | None
    output_chars: int = 0


@runtime_checkable
class FormatDescriptor(Protocol):
    """Capability set every wire format implements."""

    name: str

    def detect(self, body: dict[str, Any]) -> bool:
        """Structural sniff of the request body."""
        ...

    def get_messages(self, body: dict[str, Any]) -> list[Any]:
        """The format's conversation as a mutable ordered list."""
        ...

    def cache_tool_calls(self, messages: list[Any], state: SessionState) -> None:
        """Record invocations and result statuses into ``state``."""
        ...

    def list_tool_results(self, messages: list[Any], state: SessionState) -> list[ToolResultRef]:
        """Tool results present in this request."""
        ...

    def replace_tool_output(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        """Overwrite a result's content, keeping every structural field."""
        ...

    def replace_tool_input(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        """Overwrite an invocation's arguments with a placeholder object."""
        ...

    def inject_user_note(self, messages: list[Any], text: str, nudge_text: str) -> bool:
        """Append ``text`` to the most recent genuine user turn."""
        ...

    def append_nudge(self, messages: list[Any], nudge_text: str) -> bool:
        """Append a synthetic user turn reminding the model to prune."""
        ...

    def has_tool_results(self, messages: list[Any]) -> bool:
        """Cheap check for any tool result in the request."""
        ...


def ids_match(candidate: Any, call_id: str) -> bool:
    """Case-insensitive identifier comparison."""
    return isinstance(candidate, str) and candidate.lower() == call_id.lower()


def placeholder_arguments(placeholder: str) -> dict[str, str]:
    """Minimal argument object standing in for removed tool input."""
    return {"pruned": placeholder}


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Parse tool arguments that may arrive as a JSON string or an object."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            return {"_raw": raw}
        if isinstance(parsed, dict):
            return parsed
        return {"_value": parsed}
    return {}


def content_chars(content: Any) -> int:
    """Approximate character size of a tool result payload."""
    if content is None:
        return 0
    if isinstance(content, str):
        return len(content)
    if isinstance(content, list):
        return sum(content_chars(item) for item in content)
    if isinstance(content, dict):
        if isinstance(content.get("text"), str):
            return len(content["text"])
        return len(json.dumps(content, ensure_ascii=False, default=str))
    return len(str(content))


def content_text(content: Any) -> str | None:
    """Best-effort plain text of a result payload, for error messages."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [content_text(item) for item in content]
        joined = "\n".join(t for t in texts if t)
        return joined or None
    if isinstance(content, dict):
        for key in ("text", "error", "message"):
            value = content.get(key)
            if isinstance(value, str):
                return value
        return json.dumps(content, ensure_ascii=False, default=str)
    return None


def append_note_to_parts(
    parts: list[Any],
    text: str,
    make_part: Callable[[str], dict[str, Any]],
) -> bool:
    """Append a text part unless one already contains ``text``."""
    for part in parts:
        if isinstance(part, dict) and isinstance(part.get("text"), str) and text in part["text"]:
            return False
    parts.append(make_part(text))
    return True


def append_note_to_content(
    message: dict[str, Any],
    text: str,
    make_part: Callable[[str], dict[str, Any]],
) -> bool:
    """Merge ``text`` into a message whose ``content`` is a string or part list."""
    content = message.get("content")
    if isinstance(content, str):
        if text in content:
            return False
        message["content"] = f"{content}\n\n{text}" if content else text
        return True
    if isinstance(content, list):
        return append_note_to_parts(content, text, make_part)
    return False


def append_nudge_turn(messages: list[Any], turn: dict[str, Any], nudge_text: str) -> bool:
    """Append ``turn`` unless the conversation already ends with the nudge."""
    if not nudge_text:
        return False
    last = messages[-1] if messages else None
    if isinstance(last, dict) and last.get("role") == "user":
        if is_nudge(last.get("content", last.get("parts")), nudge_text):
            return False
    messages.append(turn)
    return True


def is_nudge(content: Any, nudge_text: str) -> bool:
    """True if a turn consists solely of a previously injected nudge."""
    if not nudge_text:
        return False
    if isinstance(content, str):
        return content == nudge_text
    if isinstance(content, list) and len(content) == 1 and isinstance(content[0], dict):
        return content[0].get("text") == nudge_text
    return False


def result_ref(call_id: str, state: SessionState, output_chars: int) -> ToolResultRef:
    """Build a ToolResultRef, resolving the tool name from session metadata."""
    key = normalize_id(call_id)
    meta = state.tool_calls.get(key)
    return ToolResultRef(
        id=key,
        tool_name=meta.tool_name if meta else None,
        output_chars=output_chars,
    )
