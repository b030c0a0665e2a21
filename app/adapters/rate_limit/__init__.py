"""Rate limiting adapters.

This package provides a small abstraction layer so the service can start with
an in-memory token bucket registry and later migrate to Redis or another
shared store without changing the HTTP layer.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter, RateLimiterEntry
from app.adapters.rate_limit.sweeper import RateLimiterSweeper
from app.adapters.rate_limit.token_bucket import TokenBucket, TokenBucketConfig

__all__ = [
    "AbstractRateLimiter",
    "InMemoryTokenBucketRateLimiter",
    "RateLimitResult",
    "RateLimiterEntry",
    "RateLimiterSweeper",
    "TokenBucket",
    "TokenBucketConfig",
]
