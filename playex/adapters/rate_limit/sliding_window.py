"""Self-cleaning sliding-window admission policy.

Every request appends its timestamp to the key's log, and the request is
admitted while the log holds at most ``limit`` entries. A background sweep,
on its own interval independent of ``window_ms``, drops timestamps older
than the window and forgets keys whose log ends up empty. This is the only
policy that reclaims memory from clients that stop sending requests; prefer
it for long-running processes.
"""

from __future__ import annotations

import logging
from types import TracebackType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from playex.adapters.rate_limit.base import (
    DEFAULT_MESSAGE,
    AdmissionPolicy,
    Decision,
    ceil_seconds,
)
from playex.adapters.rate_limit.store import Clock, monotonic_ms
from playex.adapters.rate_limit.sweeper import PeriodicSweeper

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_MS = 5 * 60 * 1000


class SlidingWindowConfig(BaseModel):
    """Validated configuration for ``SlidingWindowPolicy``."""

    model_config = ConfigDict(frozen=True)

    window_ms: int = Field(60_000, gt=0, description="Window length in milliseconds")
    limit: int = Field(100, ge=1, description="Requests allowed per key per window")
    message: str = Field(DEFAULT_MESSAGE, description="Message returned on rejection")
    sweep_interval_ms: int = Field(
        SWEEP_INTERVAL_MS,
        gt=0,
        description="Interval between background sweeps in milliseconds",
    )


class SlidingWindowPolicy(AdmissionPolicy):
    """Timestamp-log limiter with periodic background eviction.

    The sweep task is owned by the policy: start it with ``start()`` (or
    ``async with policy:``) and stop it with ``stop()`` when the policy is
    torn down. ``sweep()`` can also be called directly.
    """

    def __init__(self, config: SlidingWindowConfig | None = None, *, clock: Clock = monotonic_ms) -> None:
        super().__init__(clock=clock)
        self.config = config or SlidingWindowConfig()
        self._sweeper = PeriodicSweeper(
            self.sweep,
            interval_seconds=self.config.sweep_interval_ms / 1000,
            name="sliding_window",
        )

    def check(self, key: str, *, request: Any = None, now_ms: int | None = None) -> Decision:
        cfg = self.config
        now = self.now(now_ms)

        with self._store.locked(key) as entries:
            timestamps = entries.setdefault(key, [])
            timestamps.append(now)
            count = len(timestamps)
            oldest = timestamps[0]

        reset_after = ceil_seconds(oldest + cfg.window_ms - now)
        if count <= cfg.limit:
            return Decision(
                admitted=True,
                limit=cfg.limit,
                remaining=cfg.limit - count,
                reset_after_seconds=reset_after,
            )

        return Decision(
            admitted=False,
            limit=cfg.limit,
            remaining=0,
            retry_after_seconds=reset_after,
            reset_after_seconds=reset_after,
            message=cfg.message,
        )

    def sweep(self, now_ms: int | None = None) -> int:
        """Drop expired timestamps and forget keys left with none.

        Args:
            now_ms: Override for the current monotonic time in milliseconds.

        Returns:
            Number of keys removed from the store.
        """

        now = self.now(now_ms)
        window_ms = self.config.window_ms

        def _prune(entries: dict[str, list[int]]) -> int:
            stale: list[str] = []
            for key, timestamps in entries.items():
                valid = [t for t in timestamps if now - t < window_ms]
                if valid:
                    entries[key] = valid
                else:
                    stale.append(key)
            for key in stale:
                del entries[key]
            return len(stale)

        removed = self._store.sweep(_prune)
        logger.debug(
            "rate_limit.sweep",
            extra={"evicted_keys": removed, "remaining_keys": len(self._store)},
        )
        return removed

    @property
    def sweeping(self) -> bool:
        return self._sweeper.running

    async def start(self) -> None:
        await self._sweeper.start()

    async def stop(self) -> None:
        await self._sweeper.stop()

    async def __aenter__(self) -> "SlidingWindowPolicy":
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()
