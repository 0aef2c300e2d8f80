"""AWS Bedrock Converse wire format.

Bedrock format characteristics:
- Top-level ``system`` array and ``inferenceConfig`` object
- ``messages`` with only ``user`` and ``assistant`` roles
- Tool calls: ``{"toolUse": {"toolUseId", "name", "input"}}`` blocks in assistant content
- Tool results: ``{"toolResult": {"toolUseId", "content": [...], "status"}}``
  blocks in user content
- ``cachePoint`` blocks are left where they are
"""

from __future__ import annotations

from typing import Any

from ..state import SessionState, ToolStatus
from .base import (
    ToolResultRef,
    append_note_to_parts,
    append_nudge_turn,
    content_chars,
    content_text,
    ids_match,
    is_nudge,
    parse_arguments,
    placeholder_arguments,
    result_ref,
)


def _inner(message: Any, key: str) -> list[dict[str, Any]]:
    """The ``toolUse``/``toolResult`` payloads inside a message's content."""
    if not isinstance(message, dict) or not isinstance(message.get("content"), list):
        return []
    return [
        block[key]
        for block in message["content"]
        if isinstance(block, dict)
        and isinstance(block.get(key), dict)
        and block[key].get("toolUseId")
    ]


class BedrockFormat:
    """Descriptor for Bedrock Converse request bodies."""

    name = "bedrock"

    def detect(self, body: dict[str, Any]) -> bool:
        # OpenAI/Anthropic keep model params at the top level, not in inferenceConfig
        return (
            isinstance(body.get("system"), list)
            and "inferenceConfig" in body
            and isinstance(body.get("messages"), list)
        )

    def get_messages(self, body: dict[str, Any]) -> list[Any]:
        return body["messages"]

    def cache_tool_calls(self, messages: list[Any], state: SessionState) -> None:
        for msg in messages:
            role = msg.get("role") if isinstance(msg, dict) else None
            if role == "assistant":
                for tool_use in _inner(msg, "toolUse"):
                    state.observe_tool_call(
                        tool_use["toolUseId"],
                        tool_use.get("name"),
                        parse_arguments(tool_use.get("input")),
                    )
            elif role == "user":
                for tool_result in _inner(msg, "toolResult"):
                    if tool_result.get("status") == "error":
                        state.observe_result(
                            tool_result["toolUseId"],
                            ToolStatus.ERROR,
                            error_message=content_text(tool_result.get("content")),
                        )
                    else:
                        state.observe_result(tool_result["toolUseId"], ToolStatus.COMPLETED)

    def list_tool_results(self, messages: list[Any], state: SessionState) -> list[ToolResultRef]:
        results: list[ToolResultRef] = []
        for msg in messages:
            if isinstance(msg, dict) and msg.get("role") == "user":
                for tool_result in _inner(msg, "toolResult"):
                    size = content_chars(tool_result.get("content"))
                    results.append(result_ref(tool_result["toolUseId"], state, size))
        return results

    def replace_tool_output(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for msg in messages:
            if isinstance(msg, dict) and msg.get("role") == "user":
                for tool_result in _inner(msg, "toolResult"):
                    if ids_match(tool_result["toolUseId"], call_id):
                        tool_result["content"] = [{"text": placeholder}]
                        replaced = True
        return replaced

    def replace_tool_input(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for msg in messages:
            if isinstance(msg, dict) and msg.get("role") == "assistant":
                for tool_use in _inner(msg, "toolUse"):
                    if ids_match(tool_use["toolUseId"], call_id):
                        tool_use["input"] = placeholder_arguments(placeholder)
                        replaced = True
        return replaced

    def inject_user_note(self, messages: list[Any], text: str, nudge_text: str) -> bool:
        for msg in reversed(messages):
            if not isinstance(msg, dict) or msg.get("role") != "user":
                continue
            content = msg.get("content")
            if not isinstance(content, list) or is_nudge(content, nudge_text):
                continue
            if not any(isinstance(b, dict) and "text" in b for b in content):
                # Only toolResult blocks: a tool turn, not something the user wrote
                continue
            return append_note_to_parts(content, text, lambda t: {"text": t})
        return False

    def append_nudge(self, messages: list[Any], nudge_text: str) -> bool:
        last = messages[-1] if messages else None
        if (
            nudge_text
            and isinstance(last, dict)
            and last.get("role") == "user"
            and isinstance(last.get("content"), list)
        ):
            # Converse rejects two user turns in a row
            return append_note_to_parts(last["content"], nudge_text, lambda t: {"text": t})
        turn = {"role": "user", "content": [{"text": nudge_text}]}
        return append_nudge_turn(messages, turn, nudge_text)

    def has_tool_results(self, messages: list[Any]) -> bool:
        return any(
            _inner(msg, "toolResult")
            for msg in messages
            if isinstance(msg, dict) and msg.get("role") == "user"
        )


BEDROCK = BedrockFormat()
