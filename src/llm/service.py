# SPDX-License-Identifier: MIT
"""Caller boundary for governed text generation.

``ChatService.send_message`` is the only entry point the rest of the
application needs: it wraps a prompt and its document attachments in a
:class:`~models.Job`, hands it to the request scheduler and converts terminal
failures into a :class:`~llm.errors.RequestFailedError` with a short
human-readable message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

import logfire
from pydantic import ValidationError as PydanticValidationError

from llm.cache import ResponseCache
from llm.clock import Clock, SystemClock
from llm.errors import (
    GovernorError,
    RequestFailedError,
    ValidationError,
    describe_error,
)
from llm.rate_limiter import TokenBucket
from llm.retry import RetryPolicy
from llm.scheduler import RequestScheduler
from llm.transport import HttpTransport, Transport
from models import Job
from utils import ErrorHandler, LoggingErrorHandler

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from runtime.settings import Settings


class ChatService:
    """Send prompts through the request governor."""

    def __init__(
        self,
        scheduler: RequestScheduler,
        *,
        error_handler: ErrorHandler | None = None,
    ) -> None:
        self.scheduler = scheduler
        self._error_handler = error_handler or LoggingErrorHandler()

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        *,
        transport: Transport | None = None,
        clock: Clock | None = None,
    ) -> "ChatService":
        """Build a service wired from validated ``settings``.

        Args:
            settings: Application configuration.
            transport: Override for the HTTP transport, mainly for tests.
            clock: Time source shared by the limiter and retry policy.
        """
        clock = clock or SystemClock()
        if transport is None:
            transport = HttpTransport(
                settings.endpoint_url,
                api_key=settings.api_key,
                timeout=settings.request_timeout,
                max_context_tokens=settings.max_context_tokens,
            )
        limiter = TokenBucket(
            settings.rate_limit_capacity,
            settings.rate_limit_interval,
            clock=clock,
            strict=settings.strict_rate_limit,
        )
        retry = RetryPolicy(
            settings.max_retries,
            settings.initial_backoff,
            max_backoff=settings.max_backoff,
            jitter=settings.backoff_jitter,
            clock=clock,
        )
        scheduler = RequestScheduler(
            transport,
            limiter=limiter,
            retry=retry,
            cache=ResponseCache(),
            clock=clock,
        )
        logfire.debug(
            "ChatService created",
            endpoint=settings.endpoint_url,
            capacity=settings.rate_limit_capacity,
            interval=settings.rate_limit_interval,
            max_retries=settings.max_retries,
        )
        return cls(scheduler)

    async def send_message(
        self, prompt: str, attachments: Iterable[Any] = ()
    ) -> str:
        """Return the generated reply for ``prompt``.

        Args:
            prompt: Fully built prompt text.
            attachments: Document payloads; strings, bytes, mappings with a
                ``content`` key or :class:`~models.Attachment` instances.

        Raises:
            RequestFailedError: On any terminal failure, with a message fit for
                display. Failures outside the error taxonomy, including a
                closed scheduler, get the generic message.
        """
        try:
            job = Job(prompt=prompt, attachments=tuple(attachments))
        except PydanticValidationError as exc:
            error = ValidationError(f"Invalid request: {exc.error_count()} error(s)")
            self._error_handler.handle("Rejected malformed request", exc)
            raise RequestFailedError("Invalid request payload.", error) from exc
        try:
            return await self.scheduler.enqueue(job)
        except GovernorError as exc:
            self._error_handler.handle(
                f"Request failed after {exc.attempts} attempt(s)", exc
            )
            raise RequestFailedError(describe_error(exc), exc) from exc
        except Exception as exc:
            self._error_handler.handle("Request failed unexpectedly", exc)
            raise RequestFailedError(describe_error(exc), exc) from exc

    async def aclose(self) -> None:
        """Drain the scheduler and release the transport."""
        await self.scheduler.aclose()
        close = getattr(self.scheduler.transport, "aclose", None)
        if close is not None:
            await close()


__all__ = ["ChatService"]
