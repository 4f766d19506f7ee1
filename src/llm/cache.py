# SPDX-License-Identifier: MIT
"""In-memory response memoization keyed by content fingerprint.

Entries are written only after a successful request and live for the rest of
the process. There is no expiry and no size bound.
"""

from __future__ import annotations

import hashlib
from typing import Iterable

import logfire

from models import Attachment, CacheEntry


def _digest(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def fingerprint(prompt: str, attachments: Iterable[Attachment]) -> str:
    """Return a deterministic key for ``prompt`` and ``attachments``.

    The key is the SHA256 digest of the prompt digest followed by the ordered
    digests of each attachment's content, so attachment names do not affect it
    but their order does.
    """
    parts = [_digest(prompt)]
    parts.extend(_digest(item.content) for item in attachments)
    return _digest("|".join(parts))


class ResponseCache:
    """Map content fingerprints to previously obtained responses."""

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> str | None:
        """Return the stored response for ``key`` or ``None``."""
        entry = self._entries.get(key)
        return entry.response if entry is not None else None

    def entry(self, key: str) -> CacheEntry | None:
        """Return the full cache entry for ``key`` or ``None``."""
        return self._entries.get(key)

    def put(self, key: str, response: str) -> None:
        """Store ``response`` under ``key``."""
        self._entries[key] = CacheEntry(key=key, response=response)
        logfire.debug("Cached response", key=key[:12], size=len(self._entries))

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["ResponseCache", "fingerprint"]
