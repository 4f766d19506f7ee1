"""Utility helpers for estimating token usage and trimming context.

Token counts here are a cheap proxy (characters divided by four) rather than
an exact tokenizer count. They only decide how much document context fits in
one request, where truncation is preferred over rejecting the request.
"""

from __future__ import annotations

from constants import CHARS_PER_TOKEN

TRUNCATION_MARKER = "..."


def estimate_tokens(text: str) -> int:
    """Return the approximate number of tokens in ``text``.

    Args:
        text: Content that will be sent to the model.

    Returns:
        ``len(text) // 4``.
    """
    return len(text) // CHARS_PER_TOKEN


def truncate_to_budget(text: str, max_tokens: int) -> str:
    """Trim ``text`` so its estimated size fits ``max_tokens``.

    Args:
        text: Context to trim.
        max_tokens: Approximate token budget.

    Returns:
        ``text`` unchanged when it fits, otherwise its leading characters
        followed by ``"..."``.
    """
    limit = max_tokens * CHARS_PER_TOKEN
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


__all__ = ["TRUNCATION_MARKER", "estimate_tokens", "truncate_to_budget"]
