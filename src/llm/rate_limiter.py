# SPDX-License-Identifier: MIT
"""Token bucket admission control for downstream calls.

The bucket starts full and gains one token every ``refill_interval`` seconds
up to ``capacity``. The default policy of one token every two seconds admits
at most one call per interval.

Example:
    ```python
    limiter = TokenBucket(capacity=1, refill_interval=2.0)

    await limiter.acquire()
    ...
    ```
"""

from __future__ import annotations

import logfire

from llm.clock import Clock, SystemClock
from llm.errors import RateLimitedError

# Absorbs float drift when a sleep lands exactly on a refill boundary.
_EPSILON = 1e-9


class TokenBucket:
    """Fixed-capacity token bucket refilled at a steady rate.

    ``try_acquire`` performs the check-then-consume step without awaiting, so
    interleaved callers on the same event loop never both observe the same
    token. ``acquire`` either sleeps until the next refill or, when
    ``strict`` is set, raises :class:`~llm.errors.RateLimitedError` carrying the
    wait so the retry policy can honour it.
    """

    def __init__(
        self,
        capacity: int = 1,
        refill_interval: float = 2.0,
        *,
        clock: Clock | None = None,
        strict: bool = False,
    ) -> None:
        """Create the bucket.

        Args:
            capacity: Maximum number of tokens held at once.
            refill_interval: Seconds between single-token refills.
            clock: Time source; defaults to :class:`~llm.clock.SystemClock`.
            strict: Raise instead of waiting when no token is available.

        Raises:
            ValueError: If ``capacity`` or ``refill_interval`` is not positive.
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        if refill_interval <= 0:
            raise ValueError("refill_interval must be positive")
        self._clock = clock or SystemClock()
        self._capacity = capacity
        self._refill_interval = refill_interval
        self._strict = strict
        self._tokens = capacity
        self._last_refill = self._clock.monotonic()

    @property
    def capacity(self) -> int:
        """Return the maximum number of tokens."""
        return self._capacity

    @property
    def refill_interval(self) -> float:
        """Return the seconds between refills."""
        return self._refill_interval

    @property
    def tokens_available(self) -> int:
        """Return the tokens currently available after refilling."""
        self._refill(self._clock.monotonic())
        return self._tokens

    def _refill(self, now: float) -> None:
        if self._tokens >= self._capacity:
            # A full bucket does not bank elapsed time.
            self._last_refill = now
            return
        elapsed = now - self._last_refill
        added = int((elapsed + _EPSILON) // self._refill_interval)
        if added <= 0:
            return
        self._tokens = min(self._capacity, self._tokens + added)
        if self._tokens >= self._capacity:
            self._last_refill = now
        else:
            self._last_refill += added * self._refill_interval

    def try_acquire(self) -> bool:
        """Consume a token if one is available.

        The refill, check and decrement happen without yielding to the event
        loop.
        """
        self._refill(self._clock.monotonic())
        if self._tokens > 0:
            self._tokens -= 1
            return True
        return False

    def time_until_token(self) -> float:
        """Return seconds until the next token is added, ``0.0`` if one is ready."""
        now = self._clock.monotonic()
        self._refill(now)
        if self._tokens > 0:
            return 0.0
        return max(0.0, self._last_refill + self._refill_interval - now)

    async def acquire(self) -> None:
        """Wait until a token is consumed.

        Raises:
            RateLimitedError: In strict mode when no token is available.
        """
        while not self.try_acquire():
            wait = self.time_until_token()
            if self._strict:
                logfire.debug("Rate limiter exhausted", retry_after=wait)
                raise RateLimitedError("Local rate limit exceeded", retry_after=wait)
            logfire.debug("Waiting for rate limiter", wait=wait)
            await self._clock.sleep(wait)


__all__ = ["TokenBucket"]
