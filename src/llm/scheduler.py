# SPDX-License-Identifier: MIT
"""Single-flight request scheduler for downstream LLM calls.

Every governed request passes through one :class:`RequestScheduler`. Jobs are
placed on an explicit FIFO queue that a single worker task drains one entry at
a time, so at most one job is ever in service and no job begins network work
before every earlier job has settled. Each serviced job consults the response
cache, then runs "acquire a rate-limit token, call the transport" under the
retry policy and resolves the caller's future with the outcome.

Callers wanting a timeout race the returned awaitable themselves. Cancelling
it before the job reaches the front of the queue removes the job from service:
it consumes no rate-limit token and makes no transport call.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field

import logfire

from llm.cache import ResponseCache, fingerprint
from llm.clock import Clock, SystemClock
from llm.errors import GovernorError, SchedulerClosedError, ValidationError
from llm.rate_limiter import TokenBucket
from llm.retry import RetryPolicy
from llm.transport import Transport
from models import ErrorKind, Job, RetryAttempt
from observability.metrics import GovernorMetrics


@dataclass
class QueueEntry:
    """A job waiting for service together with its caller's future."""

    sequence: int
    job: Job
    key: str
    future: asyncio.Future[str] = field(repr=False)


class RequestScheduler:
    """Serialise jobs through cache, rate limiter, retry policy and transport."""

    def __init__(
        self,
        transport: Transport,
        *,
        limiter: TokenBucket | None = None,
        retry: RetryPolicy | None = None,
        cache: ResponseCache | None = None,
        clock: Clock | None = None,
        metrics: GovernorMetrics | None = None,
    ) -> None:
        """Create the scheduler.

        Args:
            transport: Performs one downstream call per attempt.
            limiter: Admission control; defaults to one call every two seconds.
            retry: Retry policy; defaults to three retries from two seconds.
            cache: Response cache owned by this scheduler.
            clock: Time source shared with the default limiter and policy.
            metrics: Rolling metrics sink.
        """
        self._clock = clock or SystemClock()
        self.transport = transport
        self.limiter = limiter or TokenBucket(clock=self._clock)
        self.retry = retry or RetryPolicy(clock=self._clock)
        self.cache = cache or ResponseCache()
        self.metrics = metrics or GovernorMetrics()
        self._queue: asyncio.Queue[QueueEntry] | None = None
        self._worker: asyncio.Task[None] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._in_service: QueueEntry | None = None
        self._sequence = 0
        self._closed = False

    @property
    def pending(self) -> int:
        """Return the number of queued entries not yet in service."""
        return self._queue.qsize() if self._queue is not None else 0

    @property
    def idle(self) -> bool:
        """Return ``True`` when nothing is queued or in service."""
        return self._in_service is None and self.pending == 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _bind_loop(self) -> None:
        """Rebuild the queue and worker when called from a new event loop."""
        loop = asyncio.get_running_loop()
        if self._loop is loop:
            return
        if self._queue is not None:
            stranded = self._queue.qsize()
            if stranded:
                logfire.warning(
                    "Dropping jobs stranded on a previous event loop",
                    pending=stranded,
                )
        self._loop = loop
        self._queue = None
        self._worker = None
        self._in_service = None

    def _ensure_worker(self) -> asyncio.Queue[QueueEntry]:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(
                self._drain(self._queue), name="request-scheduler"
            )
        return self._queue

    def submit(self, job: Job) -> asyncio.Future[str]:
        """Queue ``job`` and return a future settled with its outcome.

        A cached response resolves the future immediately when the scheduler
        is idle; otherwise the job waits its turn so results settle in
        submission order.

        Raises:
            SchedulerClosedError: If :meth:`aclose` has been called.
            ValidationError: If the prompt is empty.
        """
        if self._closed:
            raise SchedulerClosedError("Scheduler is closed")
        if not job.prompt or not job.prompt.strip():
            error = ValidationError("Prompt must not be empty")
            error.job = job
            raise error

        self._bind_loop()
        future: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        key = fingerprint(job.prompt, job.attachments)
        if self.idle:
            cached = self.cache.get(key)
            if cached is not None:
                self.metrics.record_cache_hit()
                logfire.debug("Cache hit on submit", key=key[:12])
                future.set_result(cached)
                return future

        queue = self._ensure_worker()
        self._sequence += 1
        queue.put_nowait(QueueEntry(self._sequence, job, key, future))
        self.metrics.record_queue_depth(queue.qsize())
        logfire.debug("Job queued", sequence=self._sequence, pending=queue.qsize())
        return future

    async def enqueue(self, job: Job) -> str:
        """Submit ``job`` and wait for its response text.

        Raises:
            GovernorError: The terminal classified failure, tagged with ``job``.
        """
        return await self.submit(job)

    async def _drain(self, queue: asyncio.Queue[QueueEntry]) -> None:
        while True:
            entry = await queue.get()
            self._in_service = entry
            try:
                await self._service(entry)
            except asyncio.CancelledError:
                if not entry.future.done():
                    entry.future.set_exception(
                        SchedulerClosedError("Scheduler stopped before completion")
                    )
                raise
            finally:
                self._in_service = None
                queue.task_done()
                self.metrics.record_queue_depth(queue.qsize())

    async def _service(self, entry: QueueEntry) -> None:
        if entry.future.done():
            logfire.info("Skipping abandoned job", sequence=entry.sequence)
            return
        cached = self.cache.get(entry.key)
        if cached is not None:
            self.metrics.record_cache_hit()
            entry.future.set_result(cached)
            return

        with logfire.span(
            "scheduler.service",
            attributes={"sequence": entry.sequence, "key": entry.key[:12]},
        ):
            try:
                text = await self.retry.run(
                    lambda: self._attempt(entry),
                    operation_id=f"job-{entry.sequence}",
                    on_retry=self._record_retry,
                )
            except GovernorError as exc:
                exc.job = entry.job
                self._reject(entry, exc)
                return
            except Exception as exc:  # noqa: BLE001 - every job must settle
                logfire.exception("Unclassified failure", sequence=entry.sequence)
                self._reject(entry, exc)
                return
            self.cache.put(entry.key, text)
            if not entry.future.done():
                entry.future.set_result(text)

    def _record_retry(self, state: RetryAttempt) -> None:
        self.metrics.record_retry(state.last_error_kind)

    @staticmethod
    def _reject(entry: QueueEntry, exc: BaseException) -> None:
        if not entry.future.done():
            entry.future.set_exception(exc)

    async def _attempt(self, entry: QueueEntry) -> str:
        await self.limiter.acquire()
        self.metrics.record_request()
        started = self._clock.monotonic()
        try:
            text = await self.transport.call(entry.job)
        except GovernorError as exc:
            self.metrics.record_error(is_429=exc.kind is ErrorKind.RATE_LIMITED)
            raise
        self.metrics.record_latency(self._clock.monotonic() - started)
        return text

    async def aclose(self) -> None:
        """Stop accepting jobs, finish queued work and stop the worker."""
        self._closed = True
        worker, self._worker = self._worker, None
        if worker is None:
            return
        if worker.done():
            if not worker.cancelled() and worker.exception() is not None:
                logfire.warning(
                    "Scheduler worker had already stopped",
                    error=str(worker.exception()),
                )
            return
        if self._loop is not asyncio.get_running_loop():
            logfire.warning("Scheduler worker belongs to another event loop")
            return
        if self._queue is not None:
            await self._queue.join()
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker

    async def __aenter__(self) -> "RequestScheduler":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = ["QueueEntry", "RequestScheduler"]
