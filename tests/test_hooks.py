"""Tests for the host plugin."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from conftest import tool_message, tool_part

from declutter.config import DeclutterConfig, JanitorConfig
from declutter.hooks import (
    NOTHING_PRUNED_MESSAGE,
    PRUNE_TOOL_NAME,
    ContextPruningPlugin,
    PruneTool,
)
from declutter.oracle import OracleDecision


@pytest.fixture
def host_messages():
    return [
        {"info": {"role": "user"}, "parts": [{"type": "text", "text": "Explore"}]},
        tool_message(tool_part("call_a", "read", input={"path": "a.py"}, output="a" * 400)),
        tool_message(tool_part("call_b", "read", input={"path": "b.py"}, output="b" * 40)),
    ]


@pytest.fixture
def history(host_messages):
    history = AsyncMock()
    history.fetch_messages.return_value = host_messages
    return history


@pytest.fixture
def oracle():
    oracle = AsyncMock()
    oracle.analyze.return_value = OracleDecision(pruned_ids=["call_a"], reasoning="superseded")
    return oracle


@pytest.fixture
def plugin(store, history, oracle):
    return ContextPruningPlugin(
        history=history,
        notifier=AsyncMock(),
        oracle=oracle,
        config=DeclutterConfig(),
        store=store,
    )


class TestOutboundRequest:
    """Tests for on_outbound_request."""

    def test_rewrites_body(self, plugin, chat_body):
        """The returned body has duplicates pruned."""
        body = plugin.on_outbound_request("s", chat_body)

        assert body is not chat_body
        assert body["messages"][3]["content"] == plugin.config.placeholders.output

    def test_unknown_body_passthrough(self, plugin):
        body = {"prompt": "hi"}
        assert plugin.on_outbound_request("s", body) is body


class TestSessionIdle:
    """Tests for on_session_idle."""

    @pytest.mark.asyncio
    async def test_schedules_janitor(self, plugin, store):
        """An idle event runs the janitor in the background."""
        task = plugin.on_session_idle("s")
        assert task is not None

        result = await task

        assert result.pruned_ids == ["call_a"]
        assert store.is_pruned("s", "call_a")
        plugin.notifier.notify.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_duplicate_idle_skipped(self, plugin, oracle):
        """A second idle event while a run is pending is not scheduled."""
        release = asyncio.Event()

        async def slow_analyze(messages, candidates, rubric):
            await release.wait()
            return OracleDecision(pruned_ids=["call_a"], reasoning="")

        oracle.analyze.side_effect = slow_analyze

        first = plugin.on_session_idle("s")
        await asyncio.sleep(0)
        assert plugin.on_session_idle("s") is None

        release.set()
        await plugin.drain()

        assert first.result().pruned_ids == ["call_a"]
        assert oracle.analyze.await_count == 1

    @pytest.mark.asyncio
    async def test_janitor_disabled(self, store, history, oracle):
        """No task is scheduled when the janitor is off."""
        config = DeclutterConfig(janitor=JanitorConfig(enabled=False))
        plugin = ContextPruningPlugin(history=history, oracle=oracle, config=config, store=store)

        assert plugin.on_session_idle("s") is None


class TestLifecycle:
    """Tests for message, compaction and deletion hooks."""

    def test_on_messages_uses_shared_pruned_set(self, plugin, store, host_messages):
        """Host messages reflect ids pruned in the store."""
        store.record_tool_call("s", "call_a", "read")
        store.mark_pruned("s", ["call_a"])

        assert plugin.on_messages("s", host_messages) == 1
        assert host_messages[1]["parts"][0]["state"]["output"] == plugin.config.placeholders.output

    def test_compaction_recorded(self, plugin, store):
        plugin.on_session_compacted("s", 123.0)
        assert store.get("s").last_compaction == 123.0

    def test_deleted_session_cleared(self, plugin, store, chat_body):
        """Deleting a session drops its pruning state."""
        plugin.on_outbound_request("s", chat_body)
        assert "s" in store.sessions()

        plugin.on_session_deleted("s")

        assert "s" not in store.sessions()

    def test_host_redaction_does_not_create_duplicates(self, plugin, store):
        """Failed calls whose host inputs were replaced are not deduplicated later."""

        def body(cmd_1, cmd_2):
            def turns(call_id, cmd, output):
                call = {
                    "id": call_id,
                    "type": "function",
                    "function": {"name": "bash", "arguments": json.dumps({"cmd": cmd})},
                }
                return [
                    {"role": "assistant", "content": None, "tool_calls": [call]},
                    {"role": "tool", "tool_call_id": call_id, "content": output},
                ]

            return {
                "model": "gpt-4o",
                "messages": [
                    {"role": "user", "content": "Build and test"},
                    *turns("err_1", cmd_1, "make: *** Error 2"),
                    *turns("err_2", cmd_2, "npm ERR! Test failed"),
                    {"role": "user", "content": "What went wrong?"},
                ],
            }

        host_messages = [
            tool_message(
                tool_part("err_1", "bash", "error", input={"cmd": "make build"}, error="Error 2"),
                tool_part("err_2", "bash", "error", input={"cmd": "npm test"}, error="failed"),
            )
        ]
        placeholder = plugin.config.placeholders.error_input

        plugin.on_outbound_request("s", body("make build", "npm test"))
        assert plugin.on_messages("s", host_messages) == 2
        assert host_messages[0]["parts"][0]["state"]["input"] == {"cmd": placeholder}
        sent = plugin.on_outbound_request("s", body(placeholder, placeholder))

        assert sent["messages"][2]["content"] == "make: *** Error 2"
        assert store.get("s").pruned_ids == set()
        assert store.get("s").tool_calls["err_1"].parameters == {"cmd": "make build"}


class TestPruneTool:
    """Tests for the explicit pruning tool."""

    def test_definition(self, plugin):
        """The tool has a name, description and an optional reason parameter."""
        tool = plugin.prune_tool()

        assert isinstance(tool, PruneTool)
        assert tool.name == PRUNE_TOOL_NAME == "context_pruning"
        assert tool.parameters["properties"]["reason"]["type"] == "string"
        assert tool.parameters["required"] == []
        assert tool.to_openai()["function"]["name"] == PRUNE_TOOL_NAME
        assert tool.to_anthropic()["input_schema"] == tool.parameters

    def test_tool_is_protected_by_default(self, plugin):
        """Automatic strategies never prune the pruning tool's own calls."""
        assert plugin.config.is_protected(PRUNE_TOOL_NAME)

    @pytest.mark.asyncio
    async def test_execute_prunes(self, plugin, oracle):
        """Executing the tool runs the janitor and summarizes the result."""
        text = await plugin.prune_tool().execute("s", {"reason": "task complete"})

        assert text.startswith("Pruned 1 tool output (~100 tokens saved).")
        assert "Reasoning: superseded" in text
        assert "Keep using context_pruning" in text
        oracle.analyze.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_execute_nothing_to_prune(self, plugin, oracle):
        """An empty decision returns the nothing-pruned message."""
        oracle.analyze.return_value = OracleDecision(pruned_ids=[], reasoning="all relevant")

        text = await plugin.prune_tool().execute("s", {})

        assert text == NOTHING_PRUNED_MESSAGE

    @pytest.mark.asyncio
    async def test_execute_resets_nudge_counter(self, plugin, store):
        """Calling the tool restarts the count of results since the last reminder."""
        with store.session("s") as state:
            state.results_since_nudge = 25

        await plugin.prune_tool().execute("s", {})

        with store.session("s") as state:
            assert state.results_since_nudge == 0

    @pytest.mark.asyncio
    async def test_execute_leaves_counter_when_nudges_disabled(self, store, history, oracle):
        plugin = ContextPruningPlugin(
            history=history, oracle=oracle, config=DeclutterConfig(nudge_freq=0), store=store
        )
        with store.session("s") as state:
            state.results_since_nudge = 25

        await plugin.prune_tool().execute("s", {})

        with store.session("s") as state:
            assert state.results_since_nudge == 25
