"""Google generateContent wire format.

``contents`` holds turns with ``role`` (``user``/``model``/``function``) and
``parts``. Tool calls are ``{"functionCall": {"name", "args", "id"?}}`` parts;
results are ``{"functionResponse": {"name", "response", "id"?}}`` parts.

Gemini ids are optional. When a part has no ``id``, calls and responses are
paired by position: the n-th call of a tool gets ``"<name>#<n>"`` and so does
the n-th response of that tool. History is append-only, so these identifiers
are stable across requests. When only one side carries ids, a response is
paired with the oldest unanswered call of the same tool.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterator
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

CALL = "functionCall"
RESPONSE = "functionResponse"


def _pair_response(candidate: str, waiting: list[str], call_ids: set[str]) -> str:
    """Resolve a response id against the calls seen so far.

    When ``candidate`` names no call (ids on one side only), the oldest
    unanswered call of the same tool is used instead.
    """
    if candidate.lower() not in call_ids and waiting:
        return waiting.pop(0)
    for i, waiting_id in enumerate(waiting):
        if waiting_id.lower() == candidate.lower():
            del waiting[i]
            break
    return candidate


def _function_parts(contents: list[Any]) -> Iterator[tuple[str, dict[str, Any], str]]:
    """Yield ``(kind, payload, call_id)`` for every function part, in order."""
    seen: dict[tuple[str, str], int] = defaultdict(int)
    call_ids: set[str] = set()
    unanswered: dict[str, list[str]] = defaultdict(list)
    for turn in contents:
        if not isinstance(turn, dict) or not isinstance(turn.get("parts"), list):
            continue
        for part in turn["parts"]:
            if not isinstance(part, dict):
                continue
            for kind in (CALL, RESPONSE):
                payload = part.get(kind)
                if not isinstance(payload, dict):
                    continue
                name = payload.get("name") or "unknown"
                position = f"{name}#{seen[(kind, name)]}"
                seen[(kind, name)] += 1
                explicit = payload.get("id")
                call_id = explicit if isinstance(explicit, str) and explicit else position
                if kind == CALL:
                    call_ids.add(call_id.lower())
                    unanswered[name].append(call_id)
                else:
                    call_id = _pair_response(call_id, unanswered[name], call_ids)
                yield kind, payload, call_id


def _is_error(payload: dict[str, Any]) -> bool:
    response = payload.get("response")
    return isinstance(response, dict) and "error" in response


class GeminiFormat:
    """Descriptor for ``{"contents": [...]}`` request bodies."""

    name = "gemini"

    def detect(self, body: dict[str, Any]) -> bool:
        return isinstance(body.get("contents"), list)

    def get_messages(self, body: dict[str, Any]) -> list[Any]:
        return body["contents"]

    def cache_tool_calls(self, messages: list[Any], state: SessionState) -> None:
        for kind, payload, call_id in _function_parts(messages):
            if kind == CALL:
                state.observe_tool_call(
                    call_id, payload.get("name"), parse_arguments(payload.get("args"))
                )
            elif _is_error(payload):
                state.observe_result(
                    call_id,
                    ToolStatus.ERROR,
                    error_message=content_text(payload["response"]["error"]),
                    tool_name=payload.get("name"),
                )
            else:
                state.observe_result(call_id, ToolStatus.COMPLETED, tool_name=payload.get("name"))

    def list_tool_results(self, messages: list[Any], state: SessionState) -> list[ToolResultRef]:
        return [
            result_ref(call_id, state, content_chars(payload.get("response")))
            for kind, payload, call_id in _function_parts(messages)
            if kind == RESPONSE
        ]

    def replace_tool_output(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for kind, payload, part_id in _function_parts(messages):
            if kind == RESPONSE and ids_match(part_id, call_id):
                key = "error" if _is_error(payload) else "result"
                payload["response"] = {key: placeholder}
                replaced = True
        return replaced

    def replace_tool_input(self, messages: list[Any], call_id: str, placeholder: str) -> bool:
        replaced = False
        for kind, payload, part_id in _function_parts(messages):
            if kind == CALL and ids_match(part_id, call_id):
                payload["args"] = placeholder_arguments(placeholder)
                replaced = True
        return replaced

    def inject_user_note(self, messages: list[Any], text: str, nudge_text: str) -> bool:
        for turn in reversed(messages):
            if not isinstance(turn, dict) or turn.get("role") != "user":
                continue
            parts = turn.get("parts")
            if not isinstance(parts, list) or is_nudge(parts, nudge_text):
                continue
            if not any(isinstance(p, dict) and "text" in p for p in parts):
                continue
            return append_note_to_parts(parts, text, lambda t: {"text": t})
        return False

    def append_nudge(self, messages: list[Any], nudge_text: str) -> bool:
        turn = {"role": "user", "parts": [{"text": nudge_text}]}
        return append_nudge_turn(messages, turn, nudge_text)

    def has_tool_results(self, messages: list[Any]) -> bool:
        return any(kind == RESPONSE for kind, _, _ in _function_parts(messages))


GEMINI = GeminiFormat()
