# SPDX-License-Identifier: MIT
"""Tests for the single-flight request scheduler."""

from __future__ import annotations

import asyncio

import pytest

from llm.cache import ResponseCache
from llm.errors import (
    ClientError,
    RateLimitedError,
    SchedulerClosedError,
    ServerError,
    ValidationError,
)
from llm.rate_limiter import TokenBucket
from llm.scheduler import RequestScheduler
from models import Job


@pytest.mark.asyncio()
async def test_jobs_settle_in_submission_order(clock, make_transport) -> None:
    transport = make_transport({"b": [ClientError("HTTP error 400", status_code=400)]})
    settled: list[str] = []
    async with RequestScheduler(transport, clock=clock) as scheduler:
        futures = {}
        for prompt in ("a", "b", "c", "d"):
            fut = scheduler.submit(Job(prompt=prompt))
            fut.add_done_callback(lambda _f, p=prompt: settled.append(p))
            futures[prompt] = fut
        results = await asyncio.gather(*futures.values(), return_exceptions=True)

    assert settled == ["a", "b", "c", "d"]
    assert transport.prompts == ["a", "b", "c", "d"]
    assert results[0] == "reply:a"
    assert isinstance(results[1], ClientError)
    assert results[2:] == ["reply:c", "reply:d"]


@pytest.mark.asyncio()
async def test_at_most_one_call_in_flight(clock, make_transport) -> None:
    transport = make_transport()
    async with RequestScheduler(transport, clock=clock) as scheduler:
        await asyncio.gather(
            *(scheduler.enqueue(Job(prompt=f"p{i}")) for i in range(6))
        )
    assert transport.max_in_flight == 1
    assert len(transport.calls) == 6


@pytest.mark.asyncio()
async def test_default_policy_spaces_calls(clock, make_transport) -> None:
    transport = make_transport()
    async with RequestScheduler(transport, clock=clock) as scheduler:
        replies = await asyncio.gather(
            scheduler.enqueue(Job(prompt="one")),
            scheduler.enqueue(Job(prompt="two")),
            scheduler.enqueue(Job(prompt="three")),
        )
    assert replies == ["reply:one", "reply:two", "reply:three"]
    assert transport.call_times == [0.0, 2.0, 4.0]


@pytest.mark.asyncio()
async def test_duplicate_requests_call_once(clock, make_transport) -> None:
    transport = make_transport()
    cache = ResponseCache()
    async with RequestScheduler(transport, clock=clock, cache=cache) as scheduler:
        first, second = await asyncio.gather(
            scheduler.enqueue(Job(prompt="same", attachments=["doc"])),
            scheduler.enqueue(Job(prompt="same", attachments=[b"doc"])),
        )
        later = scheduler.submit(Job(prompt="same", attachments=["doc"]))
        assert later.done()
        assert await later == "reply:same"

    assert first == second == "reply:same"
    assert len(transport.calls) == 1
    assert len(cache) == 1
    assert scheduler.metrics.cache_hits == 2


@pytest.mark.asyncio()
async def test_failed_responses_are_not_cached(clock, make_transport) -> None:
    transport = make_transport({"x": [ClientError("HTTP error 400", status_code=400)]})
    async with RequestScheduler(transport, clock=clock) as scheduler:
        with pytest.raises(ClientError):
            await scheduler.enqueue(Job(prompt="x"))
        assert await scheduler.enqueue(Job(prompt="x")) == "reply:x"
    assert len(transport.calls) == 2


@pytest.mark.asyncio()
async def test_retry_after_hint_is_honoured(clock, make_transport) -> None:
    transport = make_transport(
        {"a": [RateLimitedError("HTTP error 429", status_code=429, retry_after=5.0)]}
    )
    async with RequestScheduler(transport, clock=clock) as scheduler:
        assert await scheduler.enqueue(Job(prompt="a")) == "reply:a"
    assert transport.call_times == [0.0, 5.0]
    assert scheduler.metrics.retries == 1
    assert scheduler.metrics.retries_by_kind == {"rate_limited": 1}


@pytest.mark.asyncio()
async def test_retries_exhaust_with_attempt_count(clock, make_transport) -> None:
    def failure() -> ServerError:
        return ServerError("HTTP error 503", status_code=503)

    transport = make_transport({"x": [failure] * 4})
    job = Job(prompt="x")
    async with RequestScheduler(transport, clock=clock) as scheduler:
        with pytest.raises(ServerError) as info:
            await scheduler.enqueue(job)

    assert len(transport.calls) == 4
    assert transport.call_times == [0.0, 2.0, 6.0, 14.0]
    assert info.value.attempts == 4
    assert info.value.job is job


@pytest.mark.asyncio()
async def test_client_error_is_not_retried(clock, make_transport) -> None:
    transport = make_transport({"x": [ClientError("HTTP error 400", status_code=400)]})
    job = Job(prompt="x")
    async with RequestScheduler(transport, clock=clock) as scheduler:
        with pytest.raises(ClientError) as info:
            await scheduler.enqueue(job)
    assert len(transport.calls) == 1
    assert info.value.attempts == 1
    assert info.value.job is job
    assert clock.sleeps == []


@pytest.mark.asyncio()
async def test_empty_prompt_is_rejected_before_queueing(clock, make_transport) -> None:
    transport = make_transport()
    async with RequestScheduler(transport, clock=clock) as scheduler:
        job = Job(prompt="   ")
        with pytest.raises(ValidationError) as info:
            scheduler.submit(job)
        assert info.value.job is job
        assert scheduler.idle
    assert transport.calls == []


@pytest.mark.asyncio()
async def test_cancelled_job_is_skipped(clock, make_transport) -> None:
    transport = make_transport()
    async with RequestScheduler(transport, clock=clock) as scheduler:
        first = scheduler.submit(Job(prompt="a"))
        abandoned = scheduler.submit(Job(prompt="b"))
        last = scheduler.submit(Job(prompt="c"))
        abandoned.cancel()
        assert await first == "reply:a"
        assert await last == "reply:c"

    assert transport.prompts == ["a", "c"]
    assert transport.call_times == [0.0, 2.0]


@pytest.mark.asyncio()
async def test_strict_limiter_defers_through_retry(clock, make_transport) -> None:
    transport = make_transport()
    limiter = TokenBucket(clock=clock, strict=True)
    async with RequestScheduler(transport, clock=clock, limiter=limiter) as scheduler:
        await asyncio.gather(
            scheduler.enqueue(Job(prompt="a")),
            scheduler.enqueue(Job(prompt="b")),
        )
    assert transport.call_times == [0.0, 2.0]
    assert clock.sleeps == [2.0]


@pytest.mark.asyncio()
async def test_unclassified_failure_does_not_stop_worker(clock, make_transport) -> None:
    transport = make_transport({"boom": [RuntimeError("unexpected")]})
    async with RequestScheduler(transport, clock=clock) as scheduler:
        broken = scheduler.submit(Job(prompt="boom"))
        healthy = scheduler.submit(Job(prompt="fine"))
        with pytest.raises(RuntimeError, match="unexpected"):
            await broken
        assert await healthy == "reply:fine"
    assert transport.prompts == ["boom", "fine"]


@pytest.mark.asyncio()
async def test_aclose_drains_queue_then_refuses_work(clock, make_transport) -> None:
    transport = make_transport()
    scheduler = RequestScheduler(transport, clock=clock)
    futures = [scheduler.submit(Job(prompt=p)) for p in ("a", "b")]
    await scheduler.aclose()

    assert all(f.done() for f in futures)
    assert [f.result() for f in futures] == ["reply:a", "reply:b"]
    assert scheduler.closed
    with pytest.raises(SchedulerClosedError):
        scheduler.submit(Job(prompt="c"))
