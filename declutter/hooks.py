"""Host plugin wiring.

ContextPruningPlugin connects the pruning engine to a host orchestrator's
lifecycle hooks:

    plugin = ContextPruningPlugin(history=host_history, notifier=host_toasts)

    # Host calls these
    plugin.on_outbound_request(session_id, body)      # rewrite wire body
    plugin.on_messages(session_id, messages)          # rewrite host messages
    plugin.on_session_idle(session_id)                # schedule the janitor
    plugin.on_session_compacted(session_id, ts)
    plugin.on_session_deleted(session_id)

    host.register_tool(plugin.prune_tool())
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .config import DeclutterConfig, configure_logging
from .host import HistorySource, Notifier
from .interceptor import RequestInterceptor
from .janitor import Janitor, JanitorResult
from .mutator import StructuralMutator
from .oracle import PruningOracle
from .state import SessionStateStore, get_session_store

logger = logging.getLogger(__name__)

PRUNE_TOOL_NAME = "context_pruning"

PRUNE_TOOL_DESCRIPTION = (
    "Remove tool outputs that are no longer needed from the conversation context. "
    "Call this after you have summarized or acted on earlier tool outputs, or when "
    "switching to a different task. Pruned outputs are replaced with a short placeholder; "
    "re-run the tool if you need the content again."
)

NOTHING_PRUNED_MESSAGE = (
    "No prunable tool outputs found. Context is already optimized.\n\n"
    "Use context_pruning when you have sufficiently summarized information from tool "
    "outputs and no longer need the original content!"
)

KEEP_USING_MESSAGE = (
    "Keep using context_pruning when you have sufficiently summarized information from "
    "tool outputs and no longer need the original content!"
)


@dataclass
class PruneTool:
    """Explicit "prune now" tool exposed to the model.

    ``execute`` takes the host's session id and the tool arguments and
    returns the text shown to the model.
    """

    name: str
    description: str
    parameters: dict[str, Any]
    execute: Callable[[str, dict[str, Any]], Awaitable[str]]

    def to_openai(self) -> dict[str, Any]:
        """Chat Completions tool definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic(self) -> dict[str, Any]:
        """Anthropic Messages tool definition."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


@dataclass
class ContextPruningPlugin:
    """Wires interceptor, mutator and janitor to host lifecycle events.

    Attributes:
        history: Source of recent host messages for the janitor.
        notifier: Optional toast delivery.
        oracle: Pruning oracle. Defaults to LiteLLMOracle with the janitor model.
        config: Plugin configuration. Defaults to DeclutterConfig.from_env().
        store: Session state store. Defaults to the global store.
    """

    history: HistorySource
    notifier: Notifier | None = None
    oracle: PruningOracle | None = None
    config: DeclutterConfig | None = None
    store: SessionStateStore | None = None

    _interceptor: RequestInterceptor = field(init=False, repr=False)
    _mutator: StructuralMutator = field(init=False, repr=False)
    _janitor: Janitor = field(init=False, repr=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.config is None:
            self.config = DeclutterConfig.from_env()
        self.config.validate()
        configure_logging(self.config.debug)
        if self.store is None:
            self.store = get_session_store()

        self._interceptor = RequestInterceptor(store=self.store, config=self.config)
        self._mutator = StructuralMutator(store=self.store, config=self.config)
        self._janitor = Janitor(
            history=self.history,
            oracle=self.oracle,
            notifier=self.notifier,
            store=self.store,
            config=self.config,
        )
        logger.debug(
            "ContextPruningPlugin initialized: age_window=%d, janitor=%s, protected=%s",
            self.config.age_window,
            self.config.janitor.enabled,
            sorted(self.config.protected_tools),
        )

    @property
    def janitor(self) -> Janitor:
        return self._janitor

    def on_outbound_request(self, session_id: str, body: dict[str, Any]) -> dict[str, Any]:
        """Return the body to send for an outbound model request."""
        return self._interceptor.rewrite(body, session_id).body

    def on_messages(self, session_id: str, messages: list[dict[str, Any]]) -> int:
        """Prune the host's own messages in place."""
        if not self.config.enabled:
            return 0
        try:
            return self._mutator.prune_messages(session_id, messages)
        except Exception as e:
            logger.warning("Message pruning failed for session %s: %s", session_id, e)
            return 0

    def on_session_idle(self, session_id: str) -> asyncio.Task | None:
        """Schedule a janitor run. Must be called from a running event loop."""
        if not (self.config.enabled and self.config.janitor.enabled):
            return None
        if self._janitor.is_running(session_id):
            logger.debug("Janitor already running for session %s", session_id)
            return None
        task = asyncio.create_task(self._janitor.run(session_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def on_session_compacted(self, session_id: str, timestamp: float) -> None:
        self.store.record_compaction(session_id, timestamp)

    def on_session_deleted(self, session_id: str) -> None:
        self.store.clear(session_id)

    async def drain(self) -> None:
        """Wait for scheduled janitor runs to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    def prune_tool(self) -> PruneTool:
        """Build the explicit pruning tool for registration with the host."""

        async def execute(session_id: str, args: dict[str, Any]) -> str:
            reason = (args or {}).get("reason")
            if self.config.nudge_freq > 0:
                self.store.reset_nudge_counter(session_id)
            result: JanitorResult | None = await self._janitor.run_for_tool(session_id, reason)
            if result is None or result.pruned_count == 0:
                return NOTHING_PRUNED_MESSAGE
            return f"{Janitor.format_result(result)}\n\n{KEEP_USING_MESSAGE}"

        return PruneTool(
            name=PRUNE_TOOL_NAME,
            description=PRUNE_TOOL_DESCRIPTION,
            parameters={
                "type": "object",
                "properties": {
                    "reason": {
                        "type": "string",
                        "description": (
                            "Brief reason for triggering pruning "
                            "(e.g., 'task complete', 'switching focus')"
                        ),
                    },
                },
                "required": [],
            },
            execute=execute,
        )
