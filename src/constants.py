"""Project-wide constants and default policy values.

This module centralises small constants that are imported across the
application. Keep this file minimal and free of side effects.
"""

from __future__ import annotations

DEFAULT_ENDPOINT_URL = "http://localhost:3000/api/chat"

# One downstream call admitted every two seconds.
DEFAULT_RATE_LIMIT_CAPACITY = 1
DEFAULT_RATE_LIMIT_INTERVAL = 2.0

MAX_RETRIES = 3
INITIAL_BACKOFF = 2.0

# Context budget in approximate tokens (four characters per token).
MAX_TOKENS_PER_REQUEST = 4000
CHARS_PER_TOKEN = 4

CONTEXT_HEADER = "Context from documents:"

__all__ = [
    "CHARS_PER_TOKEN",
    "CONTEXT_HEADER",
    "DEFAULT_ENDPOINT_URL",
    "DEFAULT_RATE_LIMIT_CAPACITY",
    "DEFAULT_RATE_LIMIT_INTERVAL",
    "INITIAL_BACKOFF",
    "MAX_RETRIES",
    "MAX_TOKENS_PER_REQUEST",
]
