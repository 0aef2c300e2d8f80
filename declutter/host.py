"""Interfaces to the host orchestrator and helpers for its message shape.

Host messages look like::

    {
        "info": {"id": "msg_1", "role": "assistant", "time": {"created": 1700000000.0}},
        "parts": [
            {
                "type": "tool",
                "call_id": "call_1",
                "tool": "read",
                "state": {"status": "completed", "input": {...}, "output": "..."},
            },
        ],
    }

``callID`` is accepted as a spelling of ``call_id``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .state import SessionState, ToolStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """One-shot summary shown to the user after a janitor run."""

    title: str
    message: str
    variant: str = "success"
    duration_ms: int = 5000


@runtime_checkable
class HistorySource(Protocol):
    """Paged read of a session's recent host messages."""

    async def fetch_messages(self, session_id: str, limit: int) -> list[dict[str, Any]]:
        ...


@runtime_checkable
class Notifier(Protocol):
    """Delivers notifications to the user interface."""

    async def notify(self, notification: Notification) -> None:
        ...


def part_call_id(part: dict[str, Any]) -> str | None:
    call_id = part.get("call_id") or part.get("callID")
    return call_id if isinstance(call_id, str) and call_id else None


def iter_tool_parts(messages: list[Any]) -> Iterator[dict[str, Any]]:
    """Yield every tool part with a call id, in conversation order."""
    for msg in messages:
        if not isinstance(msg, dict) or not isinstance(msg.get("parts"), list):
            continue
        for part in msg["parts"]:
            if isinstance(part, dict) and part.get("type") == "tool" and part_call_id(part):
                yield part


def part_state(part: dict[str, Any]) -> dict[str, Any]:
    state = part.get("state")
    return state if isinstance(state, dict) else {}


def record_tool_parts(messages: list[Any], state: SessionState) -> None:
    """Record invocation metadata and status from host tool parts. Caller holds the lock."""
    for part in iter_tool_parts(messages):
        call_id = part_call_id(part)
        tool_state = part_state(part)
        raw_input = tool_state.get("input")
        state.observe_tool_call(
            call_id, part.get("tool"), raw_input if isinstance(raw_input, dict) else None
        )
        try:
            status = ToolStatus(tool_state.get("status"))
        except ValueError:
            logger.debug("Unknown status %r for tool part %s", tool_state.get("status"), call_id)
            continue
        error = tool_state.get("error")
        if not isinstance(error, str):
            error = None
        state.observe_result(call_id, status, error_message=error)
