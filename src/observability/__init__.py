"""Telemetry and monitoring helpers for the request governor.

Exports:
    init_logfire: Configure Pydantic Logfire instrumentation.
    GovernorMetrics: Rolling request, error and latency metrics.
"""

from .metrics import GovernorMetrics
from .monitoring import init_logfire

__all__ = ["GovernorMetrics", "init_logfire"]
