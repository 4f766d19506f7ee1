# SPDX-License-Identifier: MIT
"""Process start-up for applications embedding the governor."""

from __future__ import annotations

from pathlib import Path

import logfire

from observability import init_logfire
from runtime.environment import RuntimeEnv
from runtime.settings import Settings, load_settings

LOG_LEVELS = ["fatal", "error", "warn", "notice", "info", "debug", "trace"]

_ALIASES = {"warning": "warn", "critical": "fatal"}


def _min_log_level(settings: Settings) -> str:
    """Return the logfire level name matching ``settings.log_level``."""

    level = settings.log_level.strip().lower()
    level = _ALIASES.get(level, level)
    return level if level in LOG_LEVELS else "info"


def initialise_runtime(config_path: Path | str | None = None) -> RuntimeEnv:
    """Load settings, configure logfire and initialise :class:`RuntimeEnv`.

    Args:
        config_path: Optional YAML file overriding ``config/app.yaml``.

    Returns:
        The initialised runtime environment.
    """

    settings = load_settings(config_path)
    level = _min_log_level(settings)
    init_logfire(settings.logfire_token, level)  # type: ignore[arg-type]
    env = RuntimeEnv.initialize(settings)
    logfire.info("Request governor ready", endpoint=settings.endpoint_url)
    return env


__all__ = ["LOG_LEVELS", "initialise_runtime"]
