"""Stoppable periodic task for background state reclamation."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicSweeper:
    """Run a synchronous callback on a fixed interval inside the event loop.

    The task is owned by whoever created it and must be stopped explicitly,
    typically from the application lifespan.

    Example:
        sweeper = PeriodicSweeper(policy.sweep, interval_seconds=300)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, callback: Callable[[], int], *, interval_seconds: float, name: str = "sweeper") -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self._callback = callback
        self._interval = interval_seconds
        self._name = name
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background task. Calling it twice is a no-op."""
        if self._task is not None:
            logger.debug("rate_limit.sweeper_already_running", extra={"sweeper": self._name})
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info(
            "rate_limit.sweeper_started",
            extra={"sweeper": self._name, "interval_s": self._interval},
        )

    async def stop(self) -> None:
        """Stop the background task, waiting briefly for the current pass."""
        if self._task is None or self._stop_event is None:
            return

        self._stop_event.set()

        try:
            await asyncio.wait_for(self._task, timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("rate_limit.sweeper_stop_timeout", extra={"sweeper": self._name})
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        finally:
            self._task = None
            self._stop_event = None
            logger.info("rate_limit.sweeper_stopped", extra={"sweeper": self._name})

    async def _run(self) -> None:
        stop_event = self._stop_event
        if stop_event is None:
            return
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            else:
                break

            try:
                self._callback()
            except Exception:
                logger.exception("rate_limit.sweep_failed", extra={"sweeper": self._name})
