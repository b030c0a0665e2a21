"""In-memory registry of per-client token buckets.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock guards every read, insert, update and delete.
- State is lost on restart.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.token_bucket import TokenBucket, TokenBucketConfig

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterEntry:
    client_key: str
    bucket: TokenBucket
    last_seen: float


class InMemoryTokenBucketRateLimiter(AbstractRateLimiter):
    """Registry mapping client keys to lazily created token buckets.

    Buckets are created on the first request from a key and evicted by
    :meth:`sweep` once the key has been idle long enough. A later request
    from an evicted key starts over with a full bucket.

    Important:
        This limiter is per-process only. If the API runs with multiple workers
        (e.g., multiple Uvicorn/Gunicorn workers), each worker will enforce its
        own independent limits.
    """

    def __init__(
        self,
        *,
        rate: float,
        burst: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the registry.

        Args:
            rate: Tokens per second for new buckets.
            burst: Capacity of new buckets.
            clock: Monotonic time source in seconds.

        Raises:
            ValueError: If rate or burst are invalid.
        """
        self._config = TokenBucketConfig(rate=rate, burst=burst)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, RateLimiterEntry] = {}

    @property
    def config(self) -> TokenBucketConfig:
        return self._config

    def _get_or_create_locked(
        self, client_key: str, config: TokenBucketConfig, now: float
    ) -> RateLimiterEntry:
        entry = self._entries.get(client_key)
        if entry is None:
            entry = RateLimiterEntry(
                client_key=client_key,
                bucket=TokenBucket(config, clock=self._clock),
                last_seen=now,
            )
            self._entries[client_key] = entry
        return entry

    def get_or_create(
        self, client_key: str, config: TokenBucketConfig | None = None
    ) -> TokenBucket:
        """Return the bucket for ``client_key``, creating it if absent.

        Concurrent first access from many callers yields exactly one bucket,
        shared by all of them.

        Args:
            client_key: Client identifier.
            config: Rate/burst for a newly created bucket; defaults to the
                registry's configuration. Ignored if the bucket exists.
        """
        with self._lock:
            entry = self._get_or_create_locked(
                client_key, config or self._config, self._clock()
            )
            return entry.bucket

    def touch(self, client_key: str) -> bool:
        """Mark ``client_key`` as seen now.

        Returns:
            False if the key is not tracked.
        """
        with self._lock:
            entry = self._entries.get(client_key)
            if entry is None:
                return False
            entry.last_seen = self._clock()
            return True

    def sweep(self, idle_threshold_seconds: float) -> int:
        """Evict every entry idle for longer than ``idle_threshold_seconds``."""
        with self._lock:
            now = self._clock()
            idle_keys = [
                key
                for key, entry in self._entries.items()
                if now - entry.last_seen > idle_threshold_seconds
            ]
            for key in idle_keys:
                del self._entries[key]
            remaining = len(self._entries)

        if idle_keys:
            logger.debug(
                "rate_limit.swept",
                extra={"removed": len(idle_keys), "tracked": remaining},
            )
        return len(idle_keys)

    def consume(self, key: str) -> RateLimitResult:
        """Get-or-create, touch and spend one token, atomically.

        Args:
            key: Client identifier.

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        with self._lock:
            now = self._clock()
            entry = self._get_or_create_locked(key, self._config, now)
            entry.last_seen = now
            bucket = entry.bucket

            if bucket.allow():
                return RateLimitResult(
                    allowed=True,
                    limit=bucket.burst,
                    remaining=int(bucket.tokens),
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=bucket.burst,
                remaining=0,
                retry_after_seconds=max(1, math.ceil(bucket.retry_after())),
            )

    def clear(self) -> None:
        """Forget every tracked client."""
        with self._lock:
            self._entries.clear()

    def __contains__(self, client_key: object) -> bool:
        with self._lock:
            return client_key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryTokenBucketRateLimiter(rate={self._config.rate}, "
            f"burst={self._config.burst}, tracked={len(self._entries)})"
        )
