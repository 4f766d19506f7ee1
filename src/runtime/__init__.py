# SPDX-License-Identifier: MIT
"""Runtime package exposing the :class:`RuntimeEnv` singleton."""

from .bootstrap import initialise_runtime
from .environment import RuntimeEnv, send_message
from .settings import Settings, load_settings

__all__ = [
    "RuntimeEnv",
    "Settings",
    "initialise_runtime",
    "load_settings",
    "send_message",
]
