"""Model-assisted pruning decisions.

The janitor treats the oracle as a black box: it receives the recent session
history, the identifiers still eligible for pruning and a rubric, and
returns the identifiers it judges obsolete together with its reasoning.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol, runtime_checkable

import litellm
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import OracleError

logger = logging.getLogger(__name__)

PRUNING_RUBRIC = """\
You are a conversation analyzer that identifies obsolete tool outputs in a coding session.

Your task: identify tool call IDs whose outputs are NO LONGER RELEVANT to the current \
conversation context.

Prune tool calls whose outputs:
1. Were superseded by newer reads of the same file or resource
2. Came from exploratory reads that did not lead to edits or meaningful discussion
3. Are from more than 10 turns ago and are no longer referenced
4. Were errors that have since been fixed
5. Were replaced by more recent operations

DO NOT prune:
- Recent tool calls (within the last 5 turns)
- Tool calls that modified state (edits, writes, etc.)
- Tool calls whose outputs are actively being discussed
- Tool calls that produced errors still being debugged"""

RESPONSE_INSTRUCTIONS = """\
You MUST respond with valid JSON matching this exact schema:
{
  "pruned_tool_call_ids": ["id1", "id2", ...],
  "reasoning": "explanation of why these IDs were selected"
}

Return ONLY tool call IDs from the available list that should be removed from future \
requests."""


class OracleDecision(BaseModel):
    """Structured oracle output."""

    model_config = ConfigDict(populate_by_name=True)

    pruned_ids: list[str] = Field(default_factory=list, alias="pruned_tool_call_ids")
    reasoning: str = ""


@runtime_checkable
class PruningOracle(Protocol):
    """Anything that can decide which tool outputs are obsolete."""

    async def analyze(
        self,
        messages: list[dict[str, Any]],
        candidate_ids: list[str],
        rubric: str,
    ) -> OracleDecision:
        ...


def build_prompt(messages: list[dict[str, Any]], candidate_ids: list[str], rubric: str) -> str:
    """Render the single user prompt sent to the oracle model."""
    history = json.dumps(messages, indent=2, ensure_ascii=False, default=str)
    return (
        f"{rubric}\n\n"
        f"Available tool call IDs in this session (not yet pruned): {', '.join(candidate_ids)}\n\n"
        f"Session history:\n{history}\n\n"
        f"{RESPONSE_INSTRUCTIONS}"
    )


def parse_decision(raw: str | None, model: str = "") -> OracleDecision:
    """Validate the oracle's JSON text.

    Raises:
        OracleError: If the text is not JSON or does not match the schema.
    """
    if not raw:
        raise OracleError("Oracle returned an empty response", details={"model": model})
    try:
        return OracleDecision.model_validate_json(raw)
    except ValidationError as e:
        raise OracleError(
            "Oracle returned malformed output",
            details={"model": model, "preview": raw[:200], "errors": e.error_count()},
        ) from e


class LiteLLMOracle:
    """PruningOracle backed by any model LiteLLM can reach.

    Example:
        oracle = LiteLLMOracle(model="anthropic/claude-3-5-haiku-latest")
        decision = await oracle.analyze(messages, ["call_1", "call_2"], PRUNING_RUBRIC)
    """

    def __init__(
        self,
        model: str = "openai/gpt-4o-mini",
        timeout: float = 60.0,
        temperature: float = 0.0,
        **completion_kwargs: Any,
    ):
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.completion_kwargs = completion_kwargs

    async def analyze(
        self,
        messages: list[dict[str, Any]],
        candidate_ids: list[str],
        rubric: str = PRUNING_RUBRIC,
    ) -> OracleDecision:
        prompt = build_prompt(messages, candidate_ids, rubric)
        logger.debug(
            "Oracle request: model=%s, candidates=%d, prompt_chars=%d",
            self.model,
            len(candidate_ids),
            len(prompt),
        )

        try:
            response = await litellm.acompletion(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                temperature=self.temperature,
                timeout=self.timeout,
                **self.completion_kwargs,
            )
        except Exception as e:
            raise OracleError(
                "Oracle request failed", details={"model": self.model, "error": str(e)}
            ) from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise OracleError(
                "Oracle response has no message content", details={"model": self.model}
            ) from e

        return parse_decision(content, self.model)
