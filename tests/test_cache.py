# SPDX-License-Identifier: MIT
"""Tests for response fingerprints and the in-memory cache."""

from llm.cache import ResponseCache, fingerprint
from models import Attachment


def test_fingerprint_is_deterministic() -> None:
    docs = [Attachment(content="alpha"), Attachment(content=b"beta")]
    assert fingerprint("hi", docs) == fingerprint("hi", list(docs))
    assert len(fingerprint("hi", docs)) == 64


def test_fingerprint_ignores_names_but_not_order() -> None:
    a = Attachment(name="a.txt", content="alpha")
    b = Attachment(name="b.txt", content="beta")
    renamed = Attachment(name="other.pdf", content="alpha")
    assert fingerprint("hi", [a, b]) == fingerprint("hi", [renamed, b])
    assert fingerprint("hi", [a, b]) != fingerprint("hi", [b, a])
    assert fingerprint("hi", []) != fingerprint("hello", [])
    assert fingerprint("hi", []) != fingerprint("hi", [a])


def test_str_and_bytes_with_same_text_share_a_key() -> None:
    assert fingerprint("p", [Attachment(content="x")]) == fingerprint(
        "p", [Attachment(content=b"x")]
    )


def test_cache_get_put() -> None:
    cache = ResponseCache()
    key = fingerprint("hi", [])
    assert cache.get(key) is None
    assert key not in cache
    cache.put(key, "hello")
    assert cache.get(key) == "hello"
    assert key in cache
    assert len(cache) == 1
    entry = cache.entry(key)
    assert entry is not None
    assert entry.key == key
    assert entry.response == "hello"
    assert entry.stored_at.tzinfo is not None
