"""OpenAI Responses API wire format.

The conversation lives in ``input`` as a flat item list:
- ``{"type": "function_call", "call_id", "name", "arguments": "<json>"}``
- ``{"type": "function_call_output", "call_id", "output"}``
- message items ``{"role": "user", "content": str | [{"type": "input_text", ...}]}``

Function outputs carry no error flag, so results are recorded as completed.
"""

from __future__ import annotations

import json
from typing import Any

from ..state import SessionState, ToolStatus
from .base import (
    ToolResultRef,
    append_note_to_content,
    append_nudge_turn,
    content_chars,
    ids_match,
    is_nudge,
    parse_arguments,
    placeholder_arguments,
    result_ref,
)


def _is_item(item: Any, item_type: str) -> bool:
    return isinstance(item, dict) and item.get("type") == item_type and bool(item.get("call_id"))


class OpenAIResponsesFormat:
    """Descriptor for ``{"input": [...]}`` request bodies."""

    name = "openai-responses"

    def detect(self, body: dict[str, Any]) -> bool:
        return (
            isinstance(body.get("input"), list)
            and "messages" not in body
            and "contents" not in body
        )

    def get_messages(self, body: dict[str, Any]) -> list[Any]:
        return body["input"]

    def cache_tool_calls(self, messages: list[Any], state: SessionState) -> None:
        for item in messages:
            if _is_item(item, "function_call"):
                state.observe_tool_call(
                    item["call_id"], item.get("name"), parse_arguments(item.get("arguments"))
                )
            elif _is_item(item, "function_call_output"):
                state.observe_result(item["call_id"], ToolStatus.COMPLETED)

    def list_tool_results(self, messages: list[Any], state: SessionState) -> list[ToolResultRef]:
        return [
            result_ref(item["call_id"], state, content_chars(item.get("output")))
            for item in messages
            if _is_item(item, "function_call_output")
        ]

    def replace_tool_output(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for item in messages:
            if _is_item(item, "function_call_output") and ids_match(item["call_id"], call_id):
                item["output"] = placeholder
                replaced = True
        return replaced

    def replace_tool_input(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for item in messages:
            if _is_item(item, "function_call") and ids_match(item["call_id"], call_id):
                item["arguments"] = json.dumps(placeholder_arguments(placeholder))
                replaced = True
        return replaced

    def inject_user_note(self, messages: list[Any], text: str, nudge_text: str) -> bool:
        for item in reversed(messages):
            if not isinstance(item, dict) or item.get("role") != "user":
                continue
            if is_nudge(item.get("content"), nudge_text):
                continue
            return append_note_to_content(
                item, text, lambda t: {"type": "input_text", "text": t}
            )
        return False

    def append_nudge(self, messages: list[Any], nudge_text: str) -> bool:
        return append_nudge_turn(messages, {"role": "user", "content": nudge_text}, nudge_text)

    def has_tool_results(self, messages: list[Any]) -> bool:
        return any(_is_item(item, "function_call_output") for item in messages)


OPENAI_RESPONSES = OpenAIResponsesFormat()
