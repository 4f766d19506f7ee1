# SPDX-License-Identifier: MIT
"""Test configuration for the request governor.

Provides a virtual clock so rate limiting and backoff never wait on real time,
and a scripted transport standing in for the generation endpoint.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

import logfire
import pytest

from models import Job
from runtime.environment import RuntimeEnv

logfire.configure(send_to_logfire=False, console=False)


class FakeClock:
    """Virtual monotonic clock; ``sleep`` advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)
        await asyncio.sleep(0)

    def advance(self, seconds: float) -> None:
        self.now += seconds


Outcome = str | BaseException | Callable[[], BaseException]


class ScriptedTransport:
    """Transport returning scripted outcomes per prompt.

    Each prompt maps to a list of outcomes consumed one per call: strings are
    returned, exceptions (or zero-arg factories producing them) are raised.
    Prompts without a script, or whose script is exhausted, get
    ``"reply:<prompt>"``.
    """

    def __init__(
        self,
        clock: FakeClock,
        script: dict[str, Iterable[Outcome]] | None = None,
    ) -> None:
        self.clock = clock
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.calls: list[tuple[float, Job]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def prompts(self) -> list[str]:
        return [job.prompt for _, job in self.calls]

    @property
    def call_times(self) -> list[float]:
        return [at for at, _ in self.calls]

    async def call(self, job: Job) -> str:
        self.calls.append((self.clock.monotonic(), job))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            # Yield so any concurrent caller would be observed in flight.
            for _ in range(3):
                await asyncio.sleep(0)
            outcomes = self.script.get(job.prompt)
            outcome: Outcome = outcomes.pop(0) if outcomes else f"reply:{job.prompt}"
            if callable(outcome) and not isinstance(outcome, BaseException):
                outcome = outcome()
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1


@pytest.fixture()
def clock() -> FakeClock:
    """Provide a virtual clock starting at zero."""

    return FakeClock()


@pytest.fixture()
def make_transport(clock: FakeClock) -> Callable[..., ScriptedTransport]:
    """Return a factory building :class:`ScriptedTransport` on ``clock``."""

    def _make(script: dict[str, Iterable[Outcome]] | None = None) -> ScriptedTransport:
        return ScriptedTransport(clock, script)

    return _make


@pytest.fixture(autouse=True)
def _reset_runtime_env():
    """Ensure each test starts without a runtime environment."""

    RuntimeEnv.reset()
    yield
    RuntimeEnv.reset()
