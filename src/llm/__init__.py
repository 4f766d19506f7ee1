"""Outbound request governor for the hosted language model."""

from .cache import ResponseCache, fingerprint
from .clock import Clock, SystemClock
from .errors import (
    ClientError,
    GovernorError,
    NetworkError,
    RateLimitedError,
    RequestFailedError,
    SchedulerClosedError,
    ServerError,
    ValidationError,
)
from .rate_limiter import TokenBucket
from .retry import RetryPolicy
from .scheduler import RequestScheduler
from .service import ChatService
from .transport import HttpTransport, Transport

__all__ = [
    "ChatService",
    "ClientError",
    "Clock",
    "GovernorError",
    "HttpTransport",
    "NetworkError",
    "RateLimitedError",
    "RequestFailedError",
    "RequestScheduler",
    "ResponseCache",
    "RetryPolicy",
    "SchedulerClosedError",
    "ServerError",
    "SystemClock",
    "TokenBucket",
    "Transport",
    "ValidationError",
    "fingerprint",
]
