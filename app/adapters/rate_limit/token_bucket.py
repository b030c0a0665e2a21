"""Continuously refilling token bucket."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class TokenBucketConfig:
    """Rate and capacity shared by every bucket a registry creates.

    Attributes:
        rate: Tokens added per second.
        burst: Maximum tokens a bucket can hold.
    """

    rate: float
    burst: int

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ValueError("rate must be > 0")
        if self.burst < 1:
            raise ValueError("burst must be >= 1")


class TokenBucket:
    """Token bucket allowing ``rate`` requests per second with ``burst`` capacity.

    A new bucket starts full. Tokens accumulate continuously at ``rate`` per
    second up to ``burst``; each allowed request consumes one.

    Not thread-safe: the owning registry serializes access.
    """

    __slots__ = ("_rate", "_burst", "_clock", "_tokens", "_last_refill")

    def __init__(
        self,
        config: TokenBucketConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._rate = config.rate
        self._burst = config.burst
        self._clock = clock
        self._tokens = float(config.burst)
        self._last_refill = clock()

    @property
    def rate(self) -> float:
        return self._rate

    @property
    def burst(self) -> int:
        return self._burst

    @property
    def tokens(self) -> float:
        """Tokens available right now (refills as a side effect)."""
        self._refill(self._clock())
        return self._tokens

    def _refill(self, now: float) -> None:
        # A clock that steps backwards must not drain the bucket
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
        self._last_refill = now

    def allow(self) -> bool:
        """Consume one token if available.

        Returns:
            True when the request may proceed, False otherwise.
        """
        self._refill(self._clock())
        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    def retry_after(self) -> float:
        """Seconds until one token is available (0.0 if one already is)."""
        self._refill(self._clock())
        missing = 1.0 - self._tokens
        if missing <= 0:
            return 0.0
        return missing / self._rate

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"TokenBucket(rate={self._rate}, burst={self._burst}, tokens={self._tokens:.3f})"
