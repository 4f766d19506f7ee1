"""Error reporting abstractions."""

from __future__ import annotations

from abc import ABC, abstractmethod

import logfire


class ErrorHandler(ABC):
    """Interface for reporting errors.

    Implementations should avoid raising further exceptions and should emit
    concise diagnostics suitable for production logs.
    """

    @abstractmethod
    def handle(self, message: str, exc: BaseException | None = None) -> None:
        """Record ``message`` with optional ``exc`` context."""


class LoggingErrorHandler(ErrorHandler):
    """Error handler that logs via ``logfire``.

    Classified governor failures contribute their kind, status code and
    attempt count as structured attributes.
    """

    def handle(self, message: str, exc: BaseException | None = None) -> None:
        """Log an error message with optional exception context.

        Args:
            message: Description of the error to record.
            exc: Exception instance providing additional context.
        """
        if exc is None:
            logfire.error(message)
            return
        attrs = {
            name: getattr(exc, name)
            for name in ("status_code", "retry_after", "attempts")
            if getattr(exc, name, None) is not None
        }
        kind = getattr(exc, "kind", None)
        if kind is not None:
            attrs["error_kind"] = getattr(kind, "value", str(kind))
        logfire.error(f"{message}: {exc}", **attrs)
