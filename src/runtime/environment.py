# SPDX-License-Identifier: MIT
"""Runtime environment singleton for shared settings and the chat service."""

from __future__ import annotations

from threading import Lock
from typing import TYPE_CHECKING

import logfire

from llm.service import ChatService

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from runtime.settings import Settings


class RuntimeEnv:
    """Thread-safe singleton storing settings and the process-wide governor.

    The :class:`~llm.service.ChatService` is built lazily from the settings on
    first access so every caller in the process shares one scheduler, one
    rate limiter and one response cache.
    """

    _instance: "RuntimeEnv" | None = None
    _lock = Lock()

    def __init__(self, settings: "Settings") -> None:
        """Initialise the runtime environment."""
        self.settings = settings
        self._state_lock = Lock()
        self._chat_service: ChatService | None = None
        # Debug logging helps diagnose configuration loading problems.
        logfire.debug("RuntimeEnv created", settings=repr(settings))

    @property
    def chat_service(self) -> ChatService:
        """Return the shared chat service, creating it on first use."""
        with self._state_lock:
            if self._chat_service is None:
                self._chat_service = ChatService.from_settings(self.settings)
            return self._chat_service

    @chat_service.setter
    def chat_service(self, service: ChatService) -> None:
        """Replace the shared chat service."""
        with self._state_lock:
            self._chat_service = service

    @classmethod
    def initialize(cls, settings: "Settings") -> "RuntimeEnv":
        """Initialise and return the runtime environment.

        Args:
            settings: Validated settings.

        Returns:
            The active :class:`RuntimeEnv` instance.
        """
        with logfire.span("runtime_env.initialize"):
            with cls._lock:
                logfire.info(
                    "Initialising runtime environment",
                    endpoint=getattr(settings, "endpoint_url", None),
                )
                cls._instance = cls(settings)
                return cls._instance

    @classmethod
    def instance(cls) -> "RuntimeEnv":
        """Return the current runtime environment.

        Raises:
            RuntimeError: If :meth:`initialize` was not called.
        """
        inst = cls._instance
        if inst is None:
            logfire.error("RuntimeEnv accessed before initialisation")
            raise RuntimeError("RuntimeEnv has not been initialised")
        return inst

    @classmethod
    def reset(cls) -> None:
        """Forget the active runtime environment.

        The previous chat service is detached but not closed; callers owning
        an event loop should ``await service.aclose()`` first.
        """
        with logfire.span("runtime_env.reset"):
            with cls._lock:
                logfire.info("Resetting runtime environment")
                inst = cls._instance
                if inst is not None:
                    with inst._state_lock:
                        inst._chat_service = None
                cls._instance = None


async def send_message(prompt: str, attachments=()) -> str:
    """Send ``prompt`` through the process-wide chat service."""
    return await RuntimeEnv.instance().chat_service.send_message(prompt, attachments)


__all__ = ["RuntimeEnv", "send_message"]
