"""Shared pytest fixtures for declutter tests.

The five request-body fixtures encode the same logical conversation in each
supported wire format: the model reads ``a.py`` twice with identical
arguments, and the user then asks for a summary.
"""

import json

import pytest

from declutter.config import DeclutterConfig
from declutter.state import SessionStateStore

READ_ARGS = {"path": "a.py"}
FIRST_OUTPUT = "def main():\n    print('hello')\n" * 20
SECOND_OUTPUT = "def main():\n    print('hello, world')\n"

# (fixture name, first call id, second call id) for each body fixture
FORMAT_CASES = [
    ("chat_body", "call_1", "call_2"),
    ("anthropic_body", "toolu_1", "toolu_2"),
    ("responses_body", "fc_1", "fc_2"),
    ("bedrock_body", "tooluse_1", "tooluse_2"),
    ("gemini_body", "read#0", "read#1"),
]


@pytest.fixture
def store():
    """Fresh, isolated session store."""
    return SessionStateStore()


@pytest.fixture
def config():
    """Default configuration."""
    return DeclutterConfig()


@pytest.fixture
def chat_body():
    """Chat Completions body with a duplicated read call."""

    def call(call_id):
        return {
            "id": call_id,
            "type": "function",
            "function": {"name": "read", "arguments": json.dumps(READ_ARGS)},
        }

    return {
        "model": "gpt-4o",
        "messages": [
            {"role": "system", "content": "You are a coding assistant."},
            {"role": "user", "content": "Look at a.py"},
            {"role": "assistant", "content": None, "tool_calls": [call("call_1")]},
            {"role": "tool", "tool_call_id": "call_1", "content": FIRST_OUTPUT},
            {"role": "assistant", "content": None, "tool_calls": [call("call_2")]},
            {"role": "tool", "tool_call_id": "call_2", "content": SECOND_OUTPUT},
            {"role": "user", "content": "Thanks, now summarize it"},
        ],
    }


@pytest.fixture
def anthropic_body():
    """Anthropic Messages body (handled by the chat descriptor)."""

    def tool_use(call_id):
        return {"type": "tool_use", "id": call_id, "name": "read", "input": dict(READ_ARGS)}

    def tool_result(call_id, content):
        return {"type": "tool_result", "tool_use_id": call_id, "content": content}

    return {
        "model": "claude-sonnet-4-5",
        "system": "You are a coding assistant.",
        "max_tokens": 1024,
        "messages": [
            {"role": "user", "content": [{"type": "text", "text": "Look at a.py"}]},
            {"role": "assistant", "content": [tool_use("toolu_1")]},
            {"role": "user", "content": [tool_result("toolu_1", FIRST_OUTPUT)]},
            {"role": "assistant", "content": [tool_use("toolu_2")]},
            {"role": "user", "content": [tool_result("toolu_2", SECOND_OUTPUT)]},
            {"role": "user", "content": [{"type": "text", "text": "Thanks, now summarize it"}]},
        ],
    }


@pytest.fixture
def responses_body():
    """OpenAI Responses body."""
    call = {"type": "function_call", "name": "read", "arguments": json.dumps(READ_ARGS)}
    return {
        "model": "gpt-4o",
        "input": [
            {"role": "user", "content": "Look at a.py"},
            {**call, "call_id": "fc_1"},
            {"type": "function_call_output", "call_id": "fc_1", "output": FIRST_OUTPUT},
            {**call, "call_id": "fc_2"},
            {"type": "function_call_output", "call_id": "fc_2", "output": SECOND_OUTPUT},
            {
                "role": "user",
                "content": [{"type": "input_text", "text": "Thanks, now summarize it"}],
            },
        ],
    }


@pytest.fixture
def bedrock_body():
    """Bedrock Converse body."""

    def tool_use(call_id):
        return {"toolUse": {"toolUseId": call_id, "name": "read", "input": dict(READ_ARGS)}}

    def tool_result(call_id, text):
        return {"toolResult": {"toolUseId": call_id, "content": [{"text": text}]}}

    return {
        "system": [{"text": "You are a coding assistant."}],
        "inferenceConfig": {"maxTokens": 1024},
        "messages": [
            {"role": "user", "content": [{"text": "Look at a.py"}]},
            {"role": "assistant", "content": [tool_use("tooluse_1")]},
            {"role": "user", "content": [tool_result("tooluse_1", FIRST_OUTPUT)]},
            {"role": "assistant", "content": [tool_use("tooluse_2")]},
            {"role": "user", "content": [tool_result("tooluse_2", SECOND_OUTPUT)]},
            {"role": "user", "content": [{"text": "Thanks, now summarize it"}]},
        ],
    }


@pytest.fixture
def gemini_body():
    """Gemini generateContent body without part ids (positional pairing)."""

    def call():
        return {
            "role": "model",
            "parts": [{"functionCall": {"name": "read", "args": dict(READ_ARGS)}}],
        }

    def response(text):
        return {
            "role": "user",
            "parts": [{"functionResponse": {"name": "read", "response": {"result": text}}}],
        }

    return {
        "contents": [
            {"role": "user", "parts": [{"text": "Look at a.py"}]},
            call(),
            response(FIRST_OUTPUT),
            call(),
            response(SECOND_OUTPUT),
            {"role": "user", "parts": [{"text": "Thanks, now summarize it"}]},
        ],
        "generationConfig": {"temperature": 0},
    }


def tool_message(*parts, created=None, compacted=False):
    """Host message holding the given parts."""
    info = {"role": "assistant", "time": {"created": created if created is not None else 0.0}}
    if compacted:
        info["compacted"] = True
    return {"info": info, "parts": list(parts)}


def tool_part(call_id, tool, status="completed", input=None, output=None, error=None):
    """Host tool part."""
    state = {"status": status, "input": input if input is not None else {}}
    if output is not None:
        state["output"] = output
    if error is not None:
        state["error"] = error
    return {"type": "tool", "call_id": call_id, "tool": tool, "state": state}
