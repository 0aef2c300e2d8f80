"""Tests for the LiteLLM-backed pruning oracle."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from declutter.exceptions import OracleError
from declutter.oracle import (
    PRUNING_RUBRIC,
    LiteLLMOracle,
    OracleDecision,
    PruningOracle,
    build_prompt,
    parse_decision,
)


def completion(content):
    """Minimal stand-in for a litellm ModelResponse."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOracleDecision:
    """Tests for decision parsing."""

    def test_accepts_wire_alias(self):
        """The model-facing field name maps onto pruned_ids."""
        decision = parse_decision('{"pruned_tool_call_ids": ["a", "b"], "reasoning": "old"}')

        assert decision.pruned_ids == ["a", "b"]
        assert decision.reasoning == "old"

    def test_accepts_field_name(self):
        """Constructing by field name works too."""
        decision = OracleDecision(pruned_ids=["a"], reasoning="")
        assert decision.pruned_ids == ["a"]

    def test_malformed_json(self):
        """Non-JSON output raises OracleError."""
        with pytest.raises(OracleError) as exc_info:
            parse_decision("I think you should prune call_1", model="m")
        assert exc_info.value.details["model"] == "m"

    def test_wrong_types(self):
        """Schema mismatches raise OracleError."""
        with pytest.raises(OracleError):
            parse_decision('{"pruned_tool_call_ids": "call_1", "reasoning": "x"}')

    def test_empty(self):
        """Empty responses raise OracleError."""
        with pytest.raises(OracleError):
            parse_decision("")


class TestBuildPrompt:
    """Tests for prompt rendering."""

    def test_contains_candidates_and_history(self):
        """Rubric, candidate ids and history all appear."""
        messages = [{"info": {"role": "user"}, "parts": [{"type": "text", "text": "hi"}]}]

        prompt = build_prompt(messages, ["call_1", "call_2"], PRUNING_RUBRIC)

        assert prompt.startswith(PRUNING_RUBRIC)
        assert "call_1, call_2" in prompt
        assert json.dumps(messages, indent=2) in prompt
        assert "pruned_tool_call_ids" in prompt


class TestLiteLLMOracle:
    """Tests for LiteLLMOracle."""

    def test_is_a_pruning_oracle(self):
        assert isinstance(LiteLLMOracle(), PruningOracle)

    @pytest.mark.asyncio
    async def test_analyze(self):
        """A JSON completion is parsed into a decision."""
        content = json.dumps({"pruned_tool_call_ids": ["call_1"], "reasoning": "superseded"})
        with patch(
            "declutter.oracle.litellm.acompletion",
            new=AsyncMock(return_value=completion(content)),
        ) as mock_completion:
            oracle = LiteLLMOracle(model="openai/gpt-4o-mini", timeout=10)
            decision = await oracle.analyze([], ["call_1"], PRUNING_RUBRIC)

        assert decision.pruned_ids == ["call_1"]
        kwargs = mock_completion.await_args.kwargs
        assert kwargs["model"] == "openai/gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["timeout"] == 10
        assert kwargs["messages"][0]["role"] == "user"

    @pytest.mark.asyncio
    async def test_provider_error_wrapped(self):
        """Provider exceptions become OracleError."""
        with patch(
            "declutter.oracle.litellm.acompletion",
            new=AsyncMock(side_effect=ConnectionError("timeout")),
        ):
            with pytest.raises(OracleError) as exc_info:
                await LiteLLMOracle().analyze([], ["call_1"], PRUNING_RUBRIC)

        assert "timeout" in exc_info.value.details["error"]

    @pytest.mark.asyncio
    async def test_malformed_completion(self):
        """Non-JSON completions become OracleError."""
        with patch(
            "declutter.oracle.litellm.acompletion",
            new=AsyncMock(return_value=completion("sure! here you go")),
        ):
            with pytest.raises(OracleError):
                await LiteLLMOracle().analyze([], ["call_1"], PRUNING_RUBRIC)
