"""Outbound request rewriting.

The interceptor is the single entry point for raw request bodies:

    interceptor = RequestInterceptor()
    result = interceptor.rewrite(body, session_id="ses_1")
    send(result.body)

Every request carries the full conversation so far, so each call first
refreshes session metadata from the body itself, runs the automatic
strategies, and then writes placeholders for every pruned identifier that
appears in this body. Structure is never changed, only payload text and
arguments.

Once ``nudge_freq`` new, unprotected tool results have been seen, a short
reminder turn pointing the model at the context_pruning tool is appended as
well.

A pruning bug must never break the host's model call: any internal error
is logged and the original body is returned untouched.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .config import DeclutterConfig
from .formats import FormatDescriptor, ToolResultRef, detect_format
from .state import SessionState, SessionStateStore, get_session_store, mark_pruned, record_savings
from .strategies import DEFAULT_STRATEGIES, PruningStrategy, run_strategies
from .tokenizer import estimate_from_chars

logger = logging.getLogger(__name__)


@dataclass
class InterceptResult:
    """Outcome of rewriting one request body.

    Attributes:
        body: The body to send. The original object when nothing changed.
        format: Name of the detected wire format, or None.
        modified: True if any placeholder or note was written.
        outputs_replaced: Tool results overwritten with the output placeholder.
        inputs_replaced: Tool invocations whose arguments were overwritten.
        newly_pruned: Identifiers added to the pruned sets by this call.
        tokens_saved: Estimated tokens saved by the newly pruned outputs.
        note_injected: Whether the pruning note was appended to a user turn.
        nudge_injected: Whether a context_pruning reminder turn was appended.
    """

    body: dict[str, Any]
    format: str | None = None
    modified: bool = False
    outputs_replaced: int = 0
    inputs_replaced: int = 0
    newly_pruned: list[str] = field(default_factory=list)
    tokens_saved: int = 0
    note_injected: bool = False
    nudge_injected: bool = False


class RequestInterceptor:
    """Rewrites outbound request bodies against the shared pruned set."""

    def __init__(
        self,
        store: SessionStateStore | None = None,
        config: DeclutterConfig | None = None,
        strategies: Sequence[PruningStrategy] = DEFAULT_STRATEGIES,
    ):
        self.store = store or get_session_store()
        self.config = config or DeclutterConfig()
        self.strategies = tuple(strategies)

    def rewrite(self, body: dict[str, Any], session_id: str) -> InterceptResult:
        """Rewrite a request body. Never raises."""
        if not self.config.enabled or not isinstance(body, dict):
            return InterceptResult(body=body)

        descriptor = detect_format(body)
        if descriptor is None:
            logger.debug("No known request format for session %s, passing through", session_id)
            return InterceptResult(body=body)

        try:
            return self._rewrite(body, session_id, descriptor)
        except Exception as e:
            logger.warning(
                "Pruning failed for session %s, sending original request: %s", session_id, e
            )
            return InterceptResult(body=body, format=descriptor.name)

    def _rewrite(
        self,
        body: dict[str, Any],
        session_id: str,
        descriptor: FormatDescriptor,
    ) -> InterceptResult:
        rewritten = copy.deepcopy(body)
        messages = descriptor.get_messages(rewritten)
        result = InterceptResult(body=rewritten, format=descriptor.name)

        with self.store.session(session_id) as state:
            state.redaction_markers.update(self.config.placeholders.texts())
            descriptor.cache_tool_calls(messages, state)
            if not descriptor.has_tool_results(messages):
                logger.debug("No tool results in request for session %s", session_id)
                result.body = body
                return result

            refs = descriptor.list_tool_results(messages, state)
            nudge_due = self._track_results(state, refs)

            decision = run_strategies(
                self.strategies, state.tool_calls, state.unpruned_ids(), self.config
            )
            new_outputs = mark_pruned(state, decision.prune_output_ids)
            new_inputs = mark_pruned(state, decision.prune_input_ids, inputs=True)
            result.newly_pruned = new_outputs + new_inputs

            self._apply(messages, descriptor, state, refs, result, set(new_outputs))

        if nudge_due:
            result.nudge_injected = descriptor.append_nudge(messages, self.config.nudge_text)
            result.modified = result.nudge_injected

        if result.outputs_replaced or result.inputs_replaced:
            if self.config.inject_note:
                result.note_injected = descriptor.inject_user_note(
                    messages, self.config.note_text, self.config.nudge_text
                )
            result.modified = True

        if result.newly_pruned:
            logger.info(
                "Session %s: pruned %d tool outputs, %d inputs (~%d tokens)",
                session_id,
                len(new_outputs),
                len(new_inputs),
                result.tokens_saved,
            )

        if not result.modified:
            result.body = body
        return result

    def _track_results(self, state: SessionState, refs: list[ToolResultRef]) -> bool:
        """Count results not seen before. True when a reminder is due.

        The reminder stays due until the pruning tool resets the counter.
        """
        for ref in refs:
            if ref.id in state.seen_result_ids:
                continue
            state.seen_result_ids.add(ref.id)
            if not self.config.is_protected(ref.tool_name):
                state.results_since_nudge += 1

        return bool(self.config.nudge_freq) and state.results_since_nudge >= self.config.nudge_freq

    def _apply(
        self,
        messages: list[Any],
        descriptor: FormatDescriptor,
        state: SessionState,
        refs: list[ToolResultRef],
        result: InterceptResult,
        new_outputs: set[str],
    ) -> None:
        """Write placeholders for every pruned id present in this body."""
        placeholders = self.config.placeholders
        saved_chars = 0
        saved_tools = 0

        for ref in refs:
            if ref.id not in state.pruned_ids:
                continue
            if descriptor.replace_tool_output(messages, ref.id, placeholders.output):
                result.outputs_replaced += 1
                if ref.id in new_outputs:
                    saved_chars += ref.output_chars
                    saved_tools += 1

        # Session order keeps rewrites deterministic
        for call_id in state.tool_calls:
            if call_id in state.pruned_input_ids:
                if descriptor.replace_tool_input(messages, call_id, placeholders.error_input):
                    result.inputs_replaced += 1

        if saved_tools:
            result.tokens_saved = estimate_from_chars(saved_chars)
            record_savings(state, saved_tools, result.tokens_saved)
