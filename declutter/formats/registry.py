"""Format descriptor selection.

Descriptors are tried in a fixed order. Their predicates are mutually
exclusive, so at most one matches a body.
"""

from __future__ import annotations

import logging
from typing import Any

from ..exceptions import FormatError
from .base import FormatDescriptor
from .bedrock import BEDROCK
from .gemini import GEMINI
from .openai_chat import OPENAI_CHAT
from .openai_responses import OPENAI_RESPONSES

logger = logging.getLogger(__name__)

# Bedrock before chat: both carry a "messages" list
FORMATS: tuple[FormatDescriptor, ...] = (BEDROCK, GEMINI, OPENAI_RESPONSES, OPENAI_CHAT)


def detect_format(body: Any) -> FormatDescriptor | None:
    """Pick the descriptor matching a request body, or None for pass-through."""
    if not isinstance(body, dict):
        return None
    for descriptor in FORMATS:
        if descriptor.detect(body):
            logger.debug("Detected request format: %s", descriptor.name)
            return descriptor
    return None


def require_format(body: Any) -> FormatDescriptor:
    """Like detect_format, but raises FormatError for unknown bodies."""
    descriptor = detect_format(body)
    if descriptor is None:
        keys = sorted(body) if isinstance(body, dict) else []
        raise FormatError(
            "Unsupported request format",
            details={"keys": keys, "supported": list_formats()},
        )
    return descriptor


def get_format(name: str) -> FormatDescriptor:
    """Look up a descriptor by its tag.

    Raises:
        KeyError: If no descriptor has that name.
    """
    for descriptor in FORMATS:
        if descriptor.name == name:
            return descriptor
    raise KeyError(name)


def list_formats() -> list[str]:
    """Names of all supported formats."""
    return [descriptor.name for descriptor in FORMATS]
