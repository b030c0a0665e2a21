"""Background task evicting idle clients from a rate limiter.

The sweeper runs on the application's event loop. It is started and stopped
by the app lifespan; :meth:`RateLimiterSweeper.stop` wakes the loop
immediately instead of waiting for the next interval.
"""

from __future__ import annotations

import asyncio
import logging

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimiterSweeper:
    """Periodically calls ``limiter.sweep(idle_threshold_seconds)``."""

    def __init__(
        self,
        limiter: AbstractRateLimiter,
        *,
        interval_seconds: float = 30.0,
        idle_threshold_seconds: float = 300.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        if idle_threshold_seconds <= 0:
            raise ValueError("idle_threshold_seconds must be > 0")

        self._limiter = limiter
        self._interval = interval_seconds
        self._idle_threshold = idle_threshold_seconds
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._last_error: str | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def last_error(self) -> str | None:
        """Failure of the most recent sweep, or None if it succeeded."""
        return self._last_error

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop (no-op if running)."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._stop_event), name="rate-limit-sweeper"
        )
        logger.info(
            "rate_limit.sweeper_started",
            extra={
                "interval_s": self._interval,
                "idle_threshold_s": self._idle_threshold,
            },
        )

    async def stop(self) -> None:
        """Signal the loop to exit and wait for it."""
        if self._task is None or self._stop_event is None:
            return
        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
            self._stop_event = None
        logger.info("rate_limit.sweeper_stopped")

    def sweep_once(self) -> int:
        """Run a single sweep and return the number of evicted clients."""
        removed = self._limiter.sweep(self._idle_threshold)
        logger.debug(
            "rate_limit.sweep",
            extra={"removed": removed, "tracked": len(self._limiter)},
        )
        return removed

    def sweep_safely(self) -> int | None:
        """Like :meth:`sweep_once`, but log and record a failure instead of raising."""
        try:
            removed = self.sweep_once()
        except Exception as exc:
            self._last_error = f"{type(exc).__name__}: {exc}"
            logger.exception("rate_limit.sweep_failed")
            return None
        self._last_error = None
        return removed

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            self.sweep_safely()
