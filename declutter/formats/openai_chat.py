"""Chat Completions wire format (also covers Anthropic Messages content blocks).

Shapes handled:
- OpenAI: ``assistant.tool_calls[].function.arguments`` (JSON string) and
  ``{"role": "tool", "tool_call_id": ..., "content": ...}`` results.
- Anthropic: ``tool_use`` blocks in assistant content and ``tool_result``
  blocks (with optional ``is_error``) in user content.
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
    content_text,
    ids_match,
    is_nudge,
    parse_arguments,
    placeholder_arguments,
    result_ref,
)


def _blocks(message: dict[str, Any], block_type: str) -> list[dict[str, Any]]:
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [b for b in content if isinstance(b, dict) and b.get("type") == block_type]


class OpenAIChatFormat:
    """Descriptor for ``{"messages": [...]}`` request bodies."""

    name = "openai-chat"

    def detect(self, body: dict[str, Any]) -> bool:
        if not isinstance(body.get("messages"), list):
            return False
        # Bedrock Converse also has messages; it is told apart by these two
        return not (isinstance(body.get("system"), list) and "inferenceConfig" in body)

    def get_messages(self, body: dict[str, Any]) -> list[Any]:
        return body["messages"]

    def cache_tool_calls(self, messages: list[Any], state: SessionState) -> None:
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            role = msg.get("role")

            if role == "assistant":
                for call in msg.get("tool_calls") or []:
                    call_id = call.get("id")
                    if not call_id:
                        continue
                    function = call.get("function") or {}
                    state.observe_tool_call(
                        call_id,
                        function.get("name"),
                        parse_arguments(function.get("arguments")),
                    )
                for block in _blocks(msg, "tool_use"):
                    if block.get("id"):
                        state.observe_tool_call(
                            block["id"], block.get("name"), parse_arguments(block.get("input"))
                        )

            elif role == "tool" and msg.get("tool_call_id"):
                state.observe_result(
                    msg["tool_call_id"], ToolStatus.COMPLETED, tool_name=msg.get("name")
                )

            elif role == "user":
                for block in _blocks(msg, "tool_result"):
                    if not block.get("tool_use_id"):
                        continue
                    if block.get("is_error"):
                        state.observe_result(
                            block["tool_use_id"],
                            ToolStatus.ERROR,
                            error_message=content_text(block.get("content")),
                        )
                    else:
                        state.observe_result(block["tool_use_id"], ToolStatus.COMPLETED)

    def list_tool_results(self, messages: list[Any], state: SessionState) -> list[ToolResultRef]:
        results: list[ToolResultRef] = []
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            if msg.get("role") == "tool" and msg.get("tool_call_id"):
                results.append(
                    result_ref(msg["tool_call_id"], state, content_chars(msg.get("content")))
                )
            elif msg.get("role") == "user":
                for block in _blocks(msg, "tool_result"):
                    if not block.get("tool_use_id"):
                        continue
                    size = content_chars(block.get("content"))
                    results.append(result_ref(block["tool_use_id"], state, size))
        return results

    def replace_tool_output(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            if msg.get("role") == "tool" and ids_match(msg.get("tool_call_id"), call_id):
                msg["content"] = placeholder
                replaced = True
            elif msg.get("role") == "user":
                for block in _blocks(msg, "tool_result"):
                    if ids_match(block.get("tool_use_id"), call_id):
                        block["content"] = placeholder
                        replaced = True
        return replaced

    def replace_tool_input(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for msg in messages:
            if not isinstance(msg, dict) or msg.get("role") != "assistant":
                continue
            for call in msg.get("tool_calls") or []:
                if ids_match(call.get("id"), call_id) and isinstance(call.get("function"), dict):
                    # Fresh dict: hosts may share one function object between calls
                    call["function"] = {
                        **call["function"],
                        "arguments": json.dumps(placeholder_arguments(placeholder)),
                    }
                    replaced = True
            for block in _blocks(msg, "tool_use"):
                if ids_match(block.get("id"), call_id):
                    block["input"] = placeholder_arguments(placeholder)
                    replaced = True
        return replaced

    def inject_user_note(self, messages: list[Any], text: str, nudge_text: str) -> bool:
        for msg in reversed(messages):
            if not isinstance(msg, dict) or msg.get("role") != "user":
                continue
            content = msg.get("content")
            if is_nudge(content, nudge_text):
                continue
            if _blocks(msg, "tool_result") and not _blocks(msg, "text"):
                # Tool result carrier, not a turn the user wrote
                continue
            return append_note_to_content(msg, text, lambda t: {"type": "text", "text": t})
        return False

    def append_nudge(self, messages: list[Any], nudge_text: str) -> bool:
        return append_nudge_turn(messages, {"role": "user", "content": nudge_text}, nudge_text)

    def has_tool_results(self, messages: list[Any]) -> bool:
        for msg in messages:
            if not isinstance(msg, dict):
                continue
            if msg.get("role") == "tool":
                return True
            if msg.get("role") == "user" and _blocks(msg, "tool_result"):
                return True
        return False


OPENAI_CHAT = OpenAIChatFormat()
