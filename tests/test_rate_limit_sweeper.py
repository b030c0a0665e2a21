"""Tests for the background sweeper that evicts idle clients."""

import asyncio

import pytest

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemoryTokenBucketRateLimiter
from app.adapters.rate_limit.sweeper import RateLimiterSweeper


class FlakyLimiter(AbstractRateLimiter):
    """Limiter whose first sweep fails."""

    def __init__(self) -> None:
        self.sweeps = 0

    def consume(self, key: str) -> RateLimitResult:
        return RateLimitResult(allowed=True, limit=1, remaining=0, retry_after_seconds=None)

    def sweep(self, idle_threshold_seconds: float) -> int:
        self.sweeps += 1
        if self.sweeps == 1:
            raise RuntimeError("boom")
        return 0

    def __len__(self) -> int:
        return 0


async def _wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = asyncio.get_running_loop().time() + timeout
    while asyncio.get_running_loop().time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


def test_sweep_once_evicts_idle_clients(clock) -> None:
    limiter = InMemoryTokenBucketRateLimiter(rate=5, burst=10, clock=clock)
    limiter.consume("idle")
    clock.advance(301)

    sweeper = RateLimiterSweeper(limiter, interval_seconds=30, idle_threshold_seconds=300)

    assert sweeper.sweep_once() == 1
    assert len(limiter) == 0


@pytest.mark.asyncio
async def test_loop_evicts_idle_clients(clock) -> None:
    limiter = InMemoryTokenBucketRateLimiter(rate=5, burst=10, clock=clock)
    limiter.consume("idle")
    clock.advance(400)

    sweeper = RateLimiterSweeper(limiter, interval_seconds=0.01, idle_threshold_seconds=300)
    sweeper.start()
    try:
        assert await _wait_until(lambda: "idle" not in limiter)
    finally:
        await sweeper.stop()

    assert sweeper.running is False


@pytest.mark.asyncio
async def test_stop_does_not_wait_for_interval() -> None:
    limiter = InMemoryTokenBucketRateLimiter(rate=5, burst=10)
    sweeper = RateLimiterSweeper(limiter, interval_seconds=3600, idle_threshold_seconds=300)

    sweeper.start()
    assert sweeper.running is True

    await asyncio.wait_for(sweeper.stop(), timeout=1.0)
    assert sweeper.running is False


@pytest.mark.asyncio
async def test_start_is_idempotent() -> None:
    limiter = InMemoryTokenBucketRateLimiter(rate=5, burst=10)
    sweeper = RateLimiterSweeper(limiter, interval_seconds=3600, idle_threshold_seconds=300)

    sweeper.start()
    task = sweeper._task
    sweeper.start()

    assert sweeper._task is task
    await sweeper.stop()


@pytest.mark.asyncio
async def test_stop_without_start_is_noop() -> None:
    sweeper = RateLimiterSweeper(
        InMemoryTokenBucketRateLimiter(rate=5, burst=10),
        interval_seconds=30,
        idle_threshold_seconds=300,
    )

    await sweeper.stop()
    assert sweeper.running is False


@pytest.mark.asyncio
async def test_failed_sweep_keeps_loop_running() -> None:
    limiter = FlakyLimiter()
    sweeper = RateLimiterSweeper(limiter, interval_seconds=0.01, idle_threshold_seconds=300)

    sweeper.start()
    try:
        assert await _wait_until(lambda: limiter.sweeps >= 3)
        assert sweeper.running is True
    finally:
        await sweeper.stop()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"interval_seconds": 0, "idle_threshold_seconds": 300},
        {"interval_seconds": 30, "idle_threshold_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimiterSweeper(InMemoryTokenBucketRateLimiter(rate=1, burst=1), **kwargs)


def test_sweep_safely_records_and_clears_last_error() -> None:
    sweeper = RateLimiterSweeper(FlakyLimiter(), interval_seconds=30, idle_threshold_seconds=300)

    assert sweeper.sweep_safely() is None
    assert sweeper.last_error == "RuntimeError: boom"

    assert sweeper.sweep_safely() == 0
    assert sweeper.last_error is None
