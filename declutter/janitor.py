"""Idle-triggered semantic pruning.

When a session goes idle the janitor asks an oracle model which tool
outputs are obsolete and adds them to the session's pruned set. It runs in
two phases around the oracle call so the session lock is never held across
network I/O:

1. Under the lock: record tool metadata from host history, run the
   automatic strategies when the pruning tool asked for the run, and
   collect the not-yet-pruned identifiers.
2. Without the lock: await the oracle.
3. Under the lock again: expand batch parents, commit, update savings.
   A session deleted in the meantime is left deleted.

Anything that goes wrong is logged and the run is abandoned; the next idle
event tries again.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .config import DeclutterConfig
from .exceptions import HistoryError, NotificationError, OracleError
from .host import (
    HistorySource,
    Notification,
    Notifier,
    iter_tool_parts,
    part_call_id,
    part_state,
    record_tool_parts,
)
from .oracle import PRUNING_RUBRIC, LiteLLMOracle, OracleDecision, PruningOracle
from .state import (
    SessionState,
    SessionStateStore,
    get_session_store,
    mark_pruned,
    normalize_id,
    record_savings,
)
from .strategies import DEFAULT_STRATEGIES, PruningStrategy, run_strategies
from .tokenizer import estimate_from_chars, format_token_count

logger = logging.getLogger(__name__)


@dataclass
class JanitorResult:
    """Outcome of one completed janitor run."""

    session_id: str
    pruned_ids: list[str] = field(default_factory=list)
    tool_names: dict[str, str] = field(default_factory=dict)
    tokens_saved: int = 0
    reasoning: str = ""
    reason: str | None = None

    @property
    def pruned_count(self) -> int:
        return len(self.pruned_ids)


def derive_batch_children(
    messages: list[Any],
    batch_tool_name: str = "batch",
    child_prefix: str = "prt_",
) -> dict[str, list[str]]:
    """Map each batch parent id to the ids of the calls it spawned.

    One forward pass: a batch part opens a batch, following parts whose id
    starts with ``child_prefix`` are its children, and the first other tool
    part closes it.
    """
    batches: dict[str, list[str]] = {}
    current: str | None = None
    prefix = child_prefix.lower()

    for part in iter_tool_parts(messages):
        call_id = normalize_id(part_call_id(part))
        if part.get("tool") == batch_tool_name:
            current = call_id
            batches[current] = []
        elif current is not None and call_id.startswith(prefix):
            batches[current].append(call_id)
        elif current is not None:
            current = None
    return batches


def expand_batches(call_ids: list[str], batches: dict[str, list[str]]) -> list[str]:
    """Add every child of a named batch parent, keeping first-seen order."""
    expanded: dict[str, None] = {}
    for call_id in call_ids:
        key = normalize_id(call_id)
        expanded[key] = None
        for child in batches.get(key, ()):
            expanded[child] = None
    return list(expanded)


def collect_outputs(messages: list[Any]) -> dict[str, str]:
    """Completed tool outputs by id, for savings estimation."""
    outputs: dict[str, str] = {}
    for part in iter_tool_parts(messages):
        tool_state = part_state(part)
        output = tool_state.get("output")
        if tool_state.get("status") == "completed" and isinstance(output, str):
            outputs[normalize_id(part_call_id(part))] = output
    return outputs


class Janitor:
    """Model-assisted pruning, run on session idle or on explicit request.

    Example:
        janitor = Janitor(history=my_history_source, notifier=my_notifier)
        result = await janitor.run("ses_1")
        if result:
            print(janitor.format_result(result))
    """

    def __init__(
        self,
        history: HistorySource,
        oracle: PruningOracle | None = None,
        notifier: Notifier | None = None,
        store: SessionStateStore | None = None,
        config: DeclutterConfig | None = None,
        rubric: str = PRUNING_RUBRIC,
        strategies: Sequence[PruningStrategy] = DEFAULT_STRATEGIES,
    ):
        self.config = config or DeclutterConfig()
        self.history = history
        self.oracle = oracle or LiteLLMOracle(
            model=self.config.janitor.model,
            timeout=self.config.janitor.timeout_seconds,
        )
        self.notifier = notifier
        self.store = store or get_session_store()
        self.rubric = rubric
        self.strategies = tuple(strategies)

        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

    def is_running(self, session_id: str) -> bool:
        with self._in_flight_lock:
            return session_id in self._in_flight

    async def run(
        self,
        session_id: str,
        reason: str | None = None,
        apply_strategies: bool = False,
    ) -> JanitorResult | None:
        """Run one analysis for a session.

        Args:
            session_id: Session to analyze.
            reason: Why the run was requested, if the model asked for it.
            apply_strategies: Run the automatic strategies before the oracle.

        Returns:
            The run's result, or None if the run was skipped or failed.
        """
        with self._in_flight_lock:
            if session_id in self._in_flight:
                logger.debug("Janitor already running for session %s, skipping", session_id)
                return None
            self._in_flight.add(session_id)

        try:
            return await self._run(session_id, reason, apply_strategies)
        except OracleError as e:
            logger.error("Janitor analysis failed for session %s: %s", session_id, e)
            return None
        except HistoryError as e:
            logger.warning("Janitor skipped for session %s: %s", session_id, e)
            return None
        except asyncio.TimeoutError:
            logger.error(
                "Janitor oracle timed out after %.0fs for session %s",
                self.config.janitor.timeout_seconds,
                session_id,
            )
            return None
        except Exception:
            logger.exception("Janitor run failed for session %s", session_id)
            return None
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(session_id)

    async def run_for_tool(
        self, session_id: str, reason: str | None = None
    ) -> JanitorResult | None:
        """Run on behalf of the explicit pruning tool."""
        logger.info("Pruning requested by tool for session %s (reason: %s)", session_id, reason)
        return await self.run(
            session_id, reason=reason, apply_strategies=self.config.janitor.strategies_on_tool
        )

    async def _run(
        self, session_id: str, reason: str | None, apply_strategies: bool
    ) -> JanitorResult | None:
        cfg = self.config.janitor
        try:
            messages = await self.history.fetch_messages(session_id, cfg.history_limit)
        except Exception as e:
            raise HistoryError(
                "Failed to fetch session history",
                details={"session_id": session_id, "error": str(e)},
            ) from e
        if not messages or len(messages) < cfg.min_messages:
            logger.debug(
                "Too few messages to analyze for session %s (%d), skipping",
                session_id,
                len(messages or []),
            )
            return None

        # Phase 1: snapshot under the lock
        with self.store.session(session_id) as state:
            state.redaction_markers.update(self.config.placeholders.texts())
            record_tool_parts(messages, state)
            strategy_pruned = self._apply_strategies(state) if apply_strategies else []
            seen = dict.fromkeys(normalize_id(part_call_id(p)) for p in iter_tool_parts(messages))
            candidates = [call_id for call_id in seen if not state.is_pruned(call_id)]
        if not candidates and not strategy_pruned:
            logger.debug("No unpruned tool calls in session %s, skipping analysis", session_id)
            return None

        batches = derive_batch_children(messages, cfg.batch_tool_name, cfg.batch_child_prefix)
        outputs = collect_outputs(messages)
        if batches:
            logger.debug(
                "Session %s: %d batch tools, %d children",
                session_id,
                len(batches),
                sum(len(children) for children in batches.values()),
            )

        if candidates:
            decision = await asyncio.wait_for(
                self.oracle.analyze(messages, candidates, self.rubric),
                timeout=cfg.timeout_seconds,
            )
        else:
            decision = OracleDecision(pruned_ids=[], reasoning="")
        expanded = expand_batches(decision.pruned_ids, batches)

        # Phase 2: commit under the lock; the unpruned set may have shrunk meanwhile
        with self.store.session(session_id, create=False) as state:
            if state is None:
                logger.info(
                    "Session %s was cleared during analysis, discarding result", session_id
                )
                return None
            newly_pruned = strategy_pruned + mark_pruned(state, expanded)
            tokens = estimate_from_chars(sum(len(outputs.get(i, "")) for i in newly_pruned))
            state.stats.total_janitor_runs += 1
            if newly_pruned:
                record_savings(state, len(newly_pruned), tokens)
            tool_names = {i: state.tool_calls[i].tool_name for i in newly_pruned}

        result = JanitorResult(
            session_id=session_id,
            pruned_ids=newly_pruned,
            tool_names=tool_names,
            tokens_saved=tokens,
            reasoning=decision.reasoning,
            reason=reason,
        )
        logger.info(
            "Janitor pruned %d of %d suggested ids in session %s (~%d tokens)",
            result.pruned_count,
            len(expanded),
            session_id,
            tokens,
        )
        logger.debug("Janitor reasoning for session %s: %s", session_id, decision.reasoning)

        if newly_pruned:
            try:
                await self._notify(result)
            except NotificationError as e:
                # Pruning is already committed
                logger.error("%s", e)
        return result

    def _apply_strategies(self, state: SessionState) -> list[str]:
        """Run the automatic strategies on session metadata. Caller holds the lock."""
        decision = run_strategies(
            self.strategies, state.tool_calls, state.unpruned_ids(), self.config
        )
        mark_pruned(state, decision.prune_input_ids, inputs=True)
        return mark_pruned(state, decision.prune_output_ids)

    async def _notify(self, result: JanitorResult) -> None:
        cfg = self.config.janitor
        if not cfg.notify or self.notifier is None:
            return
        count = result.pruned_count
        notification = Notification(
            title="Context Pruned",
            message=(
                f"Removed {count} tool output{'s' if count > 1 else ''} "
                f"(~{format_token_count(result.tokens_saved)} tokens saved)"
            ),
            variant="success",
            duration_ms=cfg.notification_duration_ms,
        )
        try:
            await self.notifier.notify(notification)
        except Exception as e:
            raise NotificationError(
                "Failed to show notification",
                details={"session_id": result.session_id, "error": str(e)},
            ) from e

    @staticmethod
    def format_result(result: JanitorResult) -> str:
        """Human-readable summary, returned as the pruning tool's output."""
        count = result.pruned_count
        lines = [
            f"Pruned {count} tool output{'s' if count != 1 else ''} "
            f"(~{format_token_count(result.tokens_saved)} tokens saved)."
        ]
        by_tool: dict[str, int] = {}
        for call_id in result.pruned_ids:
            name = result.tool_names.get(call_id, "unknown")
            by_tool[name] = by_tool.get(name, 0) + 1
        for name, n in sorted(by_tool.items()):
            lines.append(f"  {name}: {n}")
        if result.reasoning:
            lines.append("")
            lines.append(f"Reasoning: {result.reasoning}")
        return "\n".join(lines)
