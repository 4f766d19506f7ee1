# SPDX-License-Identifier: MIT
"""Rolling request metrics for the governor.

``GovernorMetrics`` exposes request, error, rate-limit, retry and cache
counters to Logfire together with rolling averages computed over a sliding
time window.
"""

from __future__ import annotations

import time
from collections import Counter, deque
from typing import TYPE_CHECKING, Deque

import logfire

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from models import ErrorKind

REQUESTS_TOTAL = logfire.metric_counter("governor_requests_total")
"""Counter for transport attempts."""

ERRORS_TOTAL = logfire.metric_counter("governor_errors_total")
"""Counter for failed transport attempts."""

CACHE_HITS_TOTAL = logfire.metric_counter("governor_cache_hits_total")

RETRIES_TOTAL = logfire.metric_counter("governor_retries_total")

QUEUE_DEPTH = logfire.metric_gauge("governor_queue_depth")

ERROR_RATE = logfire.metric_gauge("governor_error_rate")

RATE_429 = logfire.metric_gauge("governor_rate_429")

AVG_LATENCY = logfire.metric_gauge("governor_avg_latency")


class GovernorMetrics:
    """Track rolling request, error and latency figures."""

    def __init__(self, window: float = 60.0) -> None:
        self._window = window
        self._requests: Deque[float] = deque()
        self._errors: Deque[float] = deque()
        self._errors_429: Deque[float] = deque()
        self._latencies: Deque[tuple[float, float]] = deque()
        self.cache_hits = 0
        self.retries = 0
        self.retries_by_kind: Counter[str] = Counter()

    def _trim(self, buf: Deque[float], now: float) -> None:
        while buf and now - buf[0] > self._window:
            buf.popleft()

    def _trim_latencies(self, now: float) -> None:
        while self._latencies and now - self._latencies[0][0] > self._window:
            self._latencies.popleft()

    def _trim_all(self, now: float) -> None:
        self._trim(self._requests, now)
        self._trim(self._errors, now)
        self._trim(self._errors_429, now)
        self._trim_latencies(now)

    def record_request(self) -> None:
        """Record the start of a transport attempt."""

        now = time.monotonic()
        self._requests.append(now)
        self._trim_all(now)
        REQUESTS_TOTAL.add(1)

    def record_error(self, is_429: bool = False) -> None:
        """Record a failed attempt.

        Args:
            is_429: Mark the error as a rate limit (HTTP 429) event.
        """

        now = time.monotonic()
        self._errors.append(now)
        if is_429:
            self._errors_429.append(now)
        self._trim_all(now)
        ERRORS_TOTAL.add(1)
        self._publish()

    def record_latency(self, duration: float) -> None:
        """Record the latency of a successful attempt in seconds."""

        now = time.monotonic()
        self._latencies.append((now, duration))
        self._trim_all(now)
        self._publish()

    def record_cache_hit(self) -> None:
        self.cache_hits += 1
        CACHE_HITS_TOTAL.add(1)

    def record_retry(self, kind: "ErrorKind | None" = None) -> None:
        """Record a scheduled retry, tagged with the failure kind if known."""

        self.retries += 1
        if kind is None:
            RETRIES_TOTAL.add(1)
            return
        self.retries_by_kind[kind.value] += 1
        RETRIES_TOTAL.add(1, {"error_kind": kind.value})

    def record_queue_depth(self, depth: int) -> None:
        QUEUE_DEPTH.set(depth)

    @property
    def error_rate(self) -> float:
        """Return failed attempts divided by attempts in the window."""

        return len(self._errors) / len(self._requests) if self._requests else 0.0

    @property
    def rate_429(self) -> float:
        """Return rate-limited attempts divided by attempts in the window."""

        return len(self._errors_429) / len(self._requests) if self._requests else 0.0

    @property
    def average_latency(self) -> float:
        """Return the mean latency of successful attempts in the window."""

        if not self._latencies:
            return 0.0
        return sum(d for _, d in self._latencies) / len(self._latencies)

    def _publish(self) -> None:
        ERROR_RATE.set(self.error_rate)
        RATE_429.set(self.rate_429)
        AVG_LATENCY.set(self.average_latency)


__all__ = ["GovernorMetrics"]
