"""Rate limiter interfaces.

The HTTP layer and the sweeper depend on this abstraction (not the concrete
registry) so the storage backend can be swapped later with minimal changes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Bucket capacity (burst) for this client.
        remaining: Whole tokens left after this request.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int | None


class AbstractRateLimiter(ABC):
    """Interface for per-client rate limiters."""

    @abstractmethod
    def consume(self, key: str) -> RateLimitResult:
        """Record a request for ``key`` and decide whether it may proceed.

        Args:
            key: Client identifier (e.g., source IP).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def sweep(self, idle_threshold_seconds: float) -> int:
        """Drop state for clients idle longer than the threshold.

        Returns:
            Number of clients removed.
        """
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        """Number of clients currently tracked."""
        raise NotImplementedError
