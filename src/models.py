# SPDX-License-Identifier: MIT
"""Pydantic models describing governed requests, cache entries and configuration.

These definitions act as the contract between callers of the chat service,
the request scheduler and its collaborators. Each class documents the
structure and semantics of the data exchanged through the governor.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constants import (
    DEFAULT_ENDPOINT_URL,
    DEFAULT_RATE_LIMIT_CAPACITY,
    DEFAULT_RATE_LIMIT_INTERVAL,
    INITIAL_BACKOFF,
    MAX_RETRIES,
    MAX_TOKENS_PER_REQUEST,
)


class StrictModel(BaseModel):
    """Base model with strict settings to prevent shape drift."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=False)


class FrozenModel(StrictModel):
    """Strict model whose instances cannot be mutated after creation."""

    model_config = ConfigDict(extra="forbid", frozen=True)


class ErrorKind(str, Enum):
    """Classification attached to every governed failure."""

    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    NETWORK = "network"
    SERVER = "server"
    CLIENT = "client"


class Attachment(FrozenModel):
    """Extracted document content sent alongside a prompt."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field("", description="Original file name, for diagnostics only.")
    content: str | bytes = Field(
        "", description="Opaque document text or bytes used as model context."
    )

    @model_validator(mode="before")
    @classmethod
    def _coerce_plain_content(cls, value: Any) -> Any:
        """Accept a bare string or bytes payload as the attachment content."""

        if isinstance(value, (str, bytes)):
            return {"content": value}
        return value

    def text(self) -> str:
        """Return the attachment content decoded as text."""

        if isinstance(self.content, bytes):
            return self.content.decode("utf-8", errors="replace")
        return self.content


class Job(FrozenModel):
    """A single prompt submitted to the governor.

    Jobs are immutable; the scheduler wraps each one in a queue entry holding
    the caller's continuation and drops it once the result settles.
    """

    prompt: str = Field(..., description="Fully built prompt text.")
    attachments: tuple[Attachment, ...] = Field(
        default_factory=tuple, description="Document payloads used as context."
    )
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when the job was created.",
    )

    @field_validator("attachments", mode="before")
    @classmethod
    def _coerce_attachments(cls, value: Any) -> Any:
        """Normalise lists and other iterables into a tuple."""

        if value is None:
            return ()
        if isinstance(value, (list, tuple)):
            return tuple(value)
        return value


class CacheEntry(FrozenModel):
    """Response memoised under a content fingerprint."""

    key: str = Field(..., min_length=1, description="Content fingerprint.")
    response: str = Field(..., description="Text returned by the endpoint.")
    stored_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when the entry was written.",
    )


class RetryAttempt(FrozenModel):
    """Progress of one governed operation through the retry loop."""

    operation_id: str = Field(..., description="Identifier used in diagnostics.")
    attempt_number: int = Field(0, ge=0, description="Zero-based attempt index.")
    last_error_kind: ErrorKind | None = Field(
        None, description="Kind of the most recent failure, if any."
    )
    next_backoff: float | None = Field(
        None, ge=0, description="Seconds to wait before the next attempt."
    )


class GovernorConfig(StrictModel):
    """File-based configuration controlling the request governor."""

    endpoint_url: Annotated[
        str,
        Field(min_length=1, description="URL of the text-generation endpoint."),
    ] = DEFAULT_ENDPOINT_URL
    log_level: Annotated[
        str, Field(min_length=1, description="Logging verbosity level.")
    ] = "INFO"
    request_timeout: float = Field(
        60.0, gt=0, description="Per-request timeout in seconds."
    )
    max_retries: int = Field(
        MAX_RETRIES, ge=0, description="Retries after the initial attempt."
    )
    initial_backoff: float = Field(
        INITIAL_BACKOFF, gt=0, description="Backoff before the first retry in seconds."
    )
    max_backoff: float | None = Field(
        None, gt=0, description="Upper bound for computed backoff delays."
    )
    backoff_jitter: float = Field(
        0.0, ge=0, le=1, description="Fractional random jitter added to backoff."
    )
    rate_limit_capacity: int = Field(
        DEFAULT_RATE_LIMIT_CAPACITY, ge=1, description="Token bucket capacity."
    )
    rate_limit_interval: float = Field(
        DEFAULT_RATE_LIMIT_INTERVAL,
        gt=0,
        description="Seconds between token refills.",
    )
    strict_rate_limit: bool = Field(
        False,
        description=(
            "Raise a retryable rate-limit error instead of waiting for a token."
        ),
    )
    max_context_tokens: int = Field(
        MAX_TOKENS_PER_REQUEST,
        ge=1,
        description="Approximate token budget for attached document context.",
    )


__all__ = [
    "Attachment",
    "CacheEntry",
    "ErrorKind",
    "FrozenModel",
    "GovernorConfig",
    "Job",
    "RetryAttempt",
    "StrictModel",
]
