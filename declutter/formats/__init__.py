"""Wire-format descriptors for the supported provider protocols.

Four protocols are understood:
1. openai-chat - Chat Completions (and Anthropic Messages content blocks)
2. openai-responses - OpenAI Responses ``input`` items
3. bedrock - AWS Bedrock Converse
4. gemini - Google generateContent

Usage:
    from declutter.formats import detect_format

    descriptor = detect_format(body)
    if descriptor is not None:
        messages = descriptor.get_messages(body)
        descriptor.replace_tool_output(messages, "call_1", "[removed]")
"""

from .base import FormatDescriptor, ToolResultRef
from .bedrock import BEDROCK, BedrockFormat
from .gemini import GEMINI, GeminiFormat
from .openai_chat import OPENAI_CHAT, OpenAIChatFormat
from .openai_responses import OPENAI_RESPONSES, OpenAIResponsesFormat
from .registry import FORMATS, detect_format, get_format, list_formats, require_format

__all__ = [
    "BEDROCK",
    "FORMATS",
    "GEMINI",
    "OPENAI_CHAT",
    "OPENAI_RESPONSES",
    "BedrockFormat",
    "FormatDescriptor",
    "GeminiFormat",
    "OpenAIChatFormat",
    "OpenAIResponsesFormat",
    "ToolResultRef",
    "detect_format",
    "get_format",
    "list_formats",
    "require_format",
]
