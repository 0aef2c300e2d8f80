"""Token estimation helpers.

Counts are estimates: tiktoken's ``cl100k_base`` encoding is a good
approximation for most chat models, and a chars/4 heuristic stands in when
the encoding cannot be used.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from functools import lru_cache

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"
CHARS_PER_TOKEN = 4


@lru_cache(maxsize=4)
def _get_encoding(encoding_name: str):
    """Get tiktoken encoding, cached for performance."""
    import tiktoken

    return tiktoken.get_encoding(encoding_name)


def estimate_from_chars(chars: int) -> int:
    """Rough token estimate from a character count."""
    return round(chars / CHARS_PER_TOKEN)


def count_tokens_text(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """Count tokens in a text string."""
    if not text:
        return 0
    return len(_get_encoding(encoding_name).encode(text, disallowed_special=()))


def estimate_tokens_batch(texts: Iterable[str]) -> list[int]:
    """Token counts for several texts, falling back to chars/4 on failure."""
    texts = list(texts)
    try:
        counts = [count_tokens_text(text) for text in texts]
    except Exception as e:
        logger.warning("Batch tokenization failed, using fallback: %s", e)
        return [estimate_from_chars(len(text)) for text in texts]

    if counts:
        logger.debug(
            "Batch token estimation complete: %d texts, %d tokens", len(counts), sum(counts)
        )
    return counts


def format_token_count(tokens: int) -> str:
    """Format a token count for display (1500 -> "1.5K", 50 -> "50")."""
    if tokens >= 1000:
        return f"{tokens / 1000:.1f}K".replace(".0K", "K")
    return str(tokens)
