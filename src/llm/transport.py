# SPDX-License-Identifier: MIT
"""Single-attempt HTTP transport to the text-generation endpoint.

The transport turns a :class:`~models.Job` into one POST request, trims the
attached document context to the configured budget and classifies the outcome
into either response text or a :class:`~llm.errors.GovernorError`. Retrying is
left to :class:`~llm.retry.RetryPolicy`.
"""

from __future__ import annotations

import json
from typing import Any, Protocol

import httpx
import logfire

from constants import CONTEXT_HEADER, MAX_TOKENS_PER_REQUEST
from llm.errors import NetworkError, ServerError, classify_status
from models import Job
from token_utils import estimate_tokens, truncate_to_budget


class Transport(Protocol):
    """Performs exactly one call to the downstream endpoint."""

    async def call(self, job: Job) -> str: ...


def build_prompt(job: Job, max_context_tokens: int = MAX_TOKENS_PER_REQUEST) -> str:
    """Return the prompt text sent downstream for ``job``.

    Attachment contents are joined with blank lines and truncated to
    ``max_context_tokens`` before being appended under a context header.
    """
    if not job.attachments:
        return job.prompt
    context = "\n\n".join(item.text() for item in job.attachments)
    context = truncate_to_budget(context, max_context_tokens)
    return f"{job.prompt}\n\n{CONTEXT_HEADER}\n{context}"


def _error_detail(response: httpx.Response) -> str:
    """Return a short description of a failed response body."""
    try:
        data = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text[:200]
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        for key in ("message", "error"):
            if isinstance(data.get(key), str):
                return data[key]
    return ""


def _extract_text(response: httpx.Response) -> str:
    """Return the generated text from a successful response."""
    try:
        data: Any = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = response.text
    if isinstance(data, dict):
        for key in ("response", "text"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    elif isinstance(data, str) and data:
        return data
    raise ServerError(
        "Invalid response format from server", status_code=response.status_code
    )


class HttpTransport:
    """Transport posting JSON to an HTTP endpoint with ``httpx``."""

    def __init__(
        self,
        endpoint_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 60.0,
        max_context_tokens: int = MAX_TOKENS_PER_REQUEST,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create the transport.

        Args:
            endpoint_url: URL receiving ``{"prompt": ...}`` POST requests.
            api_key: Optional bearer token sent with each request.
            timeout: Per-request timeout in seconds.
            max_context_tokens: Approximate budget for attached context.
            client: Pre-configured client; created and owned when omitted.
        """
        self.endpoint_url = endpoint_url
        self.max_context_tokens = max_context_tokens
        self._api_key = api_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def call(self, job: Job) -> str:
        """Send ``job`` once and return the generated text.

        Raises:
            NetworkError: If the endpoint cannot be reached or the exchange
                fails below the HTTP status level.
            RateLimitedError: On HTTP 429, with ``Retry-After`` when present.
            ServerError: On HTTP 5xx or an unusable success body.
            ClientError: On any other unsuccessful status.
        """
        prompt = build_prompt(job, self.max_context_tokens)
        attrs = {
            "endpoint": self.endpoint_url,
            "attachments": len(job.attachments),
            "estimated_tokens": estimate_tokens(prompt),
        }
        with logfire.span("transport.call", attributes=attrs):
            try:
                response = await self._client.post(
                    self.endpoint_url,
                    json={"prompt": prompt},
                    headers=self._headers(),
                )
            except httpx.RequestError as exc:
                logfire.warning("Transport failure", error=str(exc))
                raise NetworkError(
                    "Network error: Failed to reach the server"
                ) from exc
            if not response.is_success:
                raise classify_status(
                    response.status_code, response.headers, _error_detail(response)
                )
            return _extract_text(response)

    async def aclose(self) -> None:
        """Close the underlying client when this transport created it."""
        if self._owns_client:
            await self._client.aclose()


__all__ = ["HttpTransport", "Transport", "build_prompt"]
