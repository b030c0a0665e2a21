"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the environment the settings module reads at import time.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

# Rate and burst are required at startup
os.environ.setdefault("RATE_LIMIT_RATE", "5")
os.environ.setdefault("RATE_LIMIT_BURST", "10")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Any, Callable  # noqa: E402

import pytest  # noqa: E402

from app.core.config import RateLimitSettings, Settings  # noqa: E402


class FakeClock:
    """Deterministic monotonic clock used to test refill and expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings with rate limit overrides (rate=5, burst=10 by default)."""

    def _make(**rate_limit: Any) -> Settings:
        values: dict[str, Any] = {"rate": 5, "burst": 10}
        values.update(rate_limit)
        return Settings(rate_limit=RateLimitSettings(**values))

    return _make
