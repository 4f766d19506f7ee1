# SPDX-License-Identifier: MIT
"""Retry helpers for governed LLM requests.

This module centralises exponential backoff and retry-hint handling so every
downstream call shares consistent logic. The decision of whether and how long
to wait is a pure function (:meth:`RetryPolicy.next_delay`); :meth:`RetryPolicy.run`
is an iterative loop around it.
"""

from __future__ import annotations

import random
import uuid
from typing import Awaitable, Callable, TypeVar

import logfire

from constants import INITIAL_BACKOFF, MAX_RETRIES
from llm.clock import Clock, SystemClock
from llm.errors import GovernorError
from models import RetryAttempt

T = TypeVar("T")


class RetryPolicy:
    """Bounded exponential backoff honouring server-provided wait hints."""

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        initial_backoff: float = INITIAL_BACKOFF,
        *,
        max_backoff: float | None = None,
        jitter: float = 0.0,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Create the policy.

        Args:
            max_retries: Retries allowed after the initial attempt.
            initial_backoff: Delay in seconds before the first retry.
            max_backoff: Optional cap on the computed exponential delay.
            jitter: Fraction of the computed delay added at random.
            clock: Time source used for backoff sleeps.
            rng: Random source for jitter.
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if initial_backoff <= 0:
            raise ValueError("initial_backoff must be positive")
        if not 0.0 <= jitter <= 1.0:
            raise ValueError("jitter must be between 0 and 1")
        self.max_retries = max_retries
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self.jitter = jitter
        self._clock = clock or SystemClock()
        self._rng = rng or random.Random()  # nosec B311 - jitter only

    def backoff(self, attempt: int) -> float:
        """Return the exponential delay after the zero-based ``attempt``."""
        delay = self.initial_backoff * (2**attempt)
        if self.max_backoff is not None:
            delay = min(self.max_backoff, delay)
        if self.jitter:
            delay *= 1 + self._rng.random() * self.jitter
        return float(delay)

    def next_delay(self, exc: BaseException, attempt: int) -> float | None:
        """Return seconds to wait before retrying, or ``None`` when terminal.

        Args:
            exc: Failure raised by the zero-based ``attempt``.
            attempt: Index of the attempt that failed.
        """
        if not isinstance(exc, GovernorError) or not exc.retryable:
            return None
        if attempt >= self.max_retries:
            return None
        delay = self.backoff(attempt)
        if exc.retry_after is not None:
            # Explicit hints are authoritative; never retry sooner.
            delay = max(delay, exc.retry_after)
        return delay

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_id: str | None = None,
        on_retry: Callable[[RetryAttempt], None] | None = None,
    ) -> T:
        """Execute ``operation`` until it succeeds or fails terminally.

        Args:
            operation: Zero-arg coroutine factory performing one attempt.
            operation_id: Identifier recorded in retry diagnostics.
            on_retry: Called with the updated attempt state before each backoff.

        Returns:
            The result of the first successful attempt.

        Raises:
            GovernorError: The last classified failure, with ``attempts`` set.
            Exception: Unclassified failures propagate unchanged.
        """
        state = RetryAttempt(operation_id=operation_id or uuid.uuid4().hex)
        while True:
            try:
                return await operation()
            except GovernorError as exc:
                exc.attempts = state.attempt_number + 1
                delay = self.next_delay(exc, state.attempt_number)
                if delay is None:
                    logfire.warning(
                        "Request failed",
                        operation_id=state.operation_id,
                        attempts=exc.attempts,
                        error_kind=exc.kind.value,
                        status_code=exc.status_code,
                    )
                    raise
                state = state.model_copy(
                    update={
                        "attempt_number": state.attempt_number + 1,
                        "last_error_kind": exc.kind,
                        "next_backoff": delay,
                    }
                )
                logfire.warning(
                    "Retrying request",
                    operation_id=state.operation_id,
                    attempt=state.attempt_number,
                    max_retries=self.max_retries,
                    error_kind=exc.kind.value,
                    backoff_delay=delay,
                )
                if on_retry:
                    on_retry(state)
                await self._clock.sleep(delay)


__all__ = ["RetryPolicy"]
