# SPDX-License-Identifier: MIT
"""Error taxonomy for governed requests.

Every failure surfaced by the governor is a :class:`GovernorError` subclass
carrying its :class:`~models.ErrorKind`, whether it may be retried, the
originating HTTP status and an optional server-provided wait hint. Transport
builds these from HTTP responses via :func:`classify_status`; the retry policy
inspects ``retryable`` and ``retry_after``; the chat service turns them into
user-facing messages with :func:`describe_error`.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Mapping

from models import ErrorKind

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from models import Job


class GovernorError(Exception):
    """Base class for classified request failures."""

    kind: ErrorKind = ErrorKind.CLIENT
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after
        self.job: "Job | None" = None
        self.attempts = 0


class ValidationError(GovernorError):
    """Raised when a job is rejected before it is queued."""

    kind = ErrorKind.VALIDATION


class RateLimitedError(GovernorError):
    """Downstream or local rate limit hit; ``retry_after`` is the minimum wait."""

    kind = ErrorKind.RATE_LIMITED
    retryable = True


class NetworkError(GovernorError):
    """The endpoint could not be reached."""

    kind = ErrorKind.NETWORK
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = 0,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, retry_after=retry_after)


class ServerError(GovernorError):
    """The endpoint failed with a 5xx status or an unusable body."""

    kind = ErrorKind.SERVER
    retryable = True


class ClientError(GovernorError):
    """The endpoint rejected the request; retrying will not help."""

    kind = ErrorKind.CLIENT


class SchedulerClosedError(RuntimeError):
    """Raised when submitting to a scheduler that has been closed."""


class RequestFailedError(Exception):
    """Terminal failure reported to callers of the chat service.

    ``str(error)`` is a short human-readable message; the cause is available
    as ``__cause__``. Details of a classified cause are copied onto the
    instance; an unclassified cause leaves ``kind`` as ``None``.
    """

    def __init__(self, message: str, cause: BaseException) -> None:
        super().__init__(message)
        self.kind: ErrorKind | None = getattr(cause, "kind", None)
        self.status_code: int | None = getattr(cause, "status_code", None)
        self.retry_after: float | None = getattr(cause, "retry_after", None)
        self.attempts: int = getattr(cause, "attempts", 0)


def _parse_retry_datetime(value: str) -> float | None:
    """Return seconds until the HTTP-date ``value`` or ``None``."""
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt is None:  # pragma: no cover - older Python returned None
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())


def parse_retry_after(value: str | None) -> float | None:
    """Return a ``Retry-After`` header value in seconds.

    Both delta-seconds and HTTP-date forms are understood. Unparseable or
    negative values yield ``None``.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return _parse_retry_datetime(value)
    if seconds < 0 or math.isnan(seconds) or math.isinf(seconds):
        return None
    return seconds


def classify_status(
    status_code: int,
    headers: Mapping[str, str] | None = None,
    detail: str = "",
) -> GovernorError:
    """Map a non-success HTTP response onto the error taxonomy."""
    message = f"HTTP error {status_code}"
    if detail:
        message = f"{message}: {detail}"
    if status_code == 429:
        headers = headers or {}
        hint = parse_retry_after(
            headers.get("Retry-After") or headers.get("retry-after")
        )
        return RateLimitedError(message, status_code=status_code, retry_after=hint)
    if status_code >= 500:
        return ServerError(message, status_code=status_code)
    return ClientError(message, status_code=status_code)


def describe_error(exc: BaseException) -> str:
    """Return the user-facing message for ``exc``."""
    if isinstance(exc, RateLimitedError):
        wait = math.ceil(exc.retry_after) if exc.retry_after is not None else None
        if wait is None:
            return "Rate limit exceeded. Please try again shortly."
        return f"Rate limit exceeded. Retrying in {wait} seconds..."
    if isinstance(exc, NetworkError):
        return "Network error: Please check your internet connection."
    if isinstance(exc, ServerError):
        return "Server error: Please try again later."
    if isinstance(exc, ValidationError):
        return "Prompt must not be empty."
    return "Failed to process request. Please try again."


__all__ = [
    "ClientError",
    "GovernorError",
    "NetworkError",
    "RateLimitedError",
    "RequestFailedError",
    "SchedulerClosedError",
    "ServerError",
    "ValidationError",
    "classify_status",
    "describe_error",
    "parse_retry_after",
]
