"""Background task that periodically drops stale limiter entries.

Lazy eviction already clears entries when their key is touched again; the
sweeper bounds memory for keys that are never seen a second time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from app.adapters.rate_limit.base import AbstractRateLimiter

logger = logging.getLogger(__name__)


class RateLimitSweeper:
    """Run ``sweep()`` on a set of limiters every ``interval_seconds``."""

    def __init__(
        self,
        limiters: Iterable[AbstractRateLimiter],
        *,
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self._limiters = tuple(limiters)
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None

    def sweep_once(self) -> int:
        """Sweep every limiter once and return the total removed."""
        return sum(limiter.sweep() for limiter in self._limiters)

    async def start(self) -> None:
        if self._task is not None:
            logger.debug("rate_limit.sweeper_already_running")
            return

        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())
        logger.info(
            "rate_limit.sweeper_started",
            extra={"interval_s": self._interval, "limiters": len(self._limiters)},
        )

    async def stop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("rate_limit.sweeper_stop_timeout")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            logger.info("rate_limit.sweeper_stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                removed = self.sweep_once()
            except Exception as exc:
                logger.error(
                    "rate_limit.sweep_failed",
                    extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
                )
            else:
                if removed:
                    logger.info("rate_limit.sweep_completed", extra={"removed": removed})

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                # interval elapsed
                pass
