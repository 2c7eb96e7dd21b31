"""In-memory fixed-window admission policy.

Each client key gets its own window, opened by its first counted request
and lasting ``window_ms``. Every non-skipped request increments the key's
counter, rejected ones included, until the window elapses.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Keys are never evicted. A long-running process keeps one small record per
  client ever seen; use the sliding-window policy where that matters.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from playex.adapters.rate_limit.base import (
    DEFAULT_MESSAGE,
    AdmissionPolicy,
    Decision,
    ceil_seconds,
)
from playex.adapters.rate_limit.store import Clock, monotonic_ms


SkipPredicate = Callable[[Any], bool]


class FixedWindowConfig(BaseModel):
    """Validated configuration for ``FixedWindowPolicy``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    window_ms: int = Field(60_000, gt=0, description="Window length in milliseconds")
    limit: int = Field(30, ge=1, description="Requests allowed per key per window")
    message: str = Field(DEFAULT_MESSAGE, description="Message returned on rejection")
    skip: SkipPredicate | None = Field(
        None,
        description="Predicate exempting a request from counting and rejection",
    )
    skip_successful_requests: bool = Field(
        False,
        description="Give back the count of requests that end up succeeding",
    )
    skip_failed_requests: bool = Field(
        False,
        description="Give back the count of requests that end up failing",
    )


@dataclass
class _WindowState:
    window_start_ms: int
    count: int


class FixedWindowPolicy(AdmissionPolicy):
    """Admit up to ``limit`` requests per key within each key's own window."""

    def __init__(self, config: FixedWindowConfig | None = None, *, clock: Clock = monotonic_ms) -> None:
        super().__init__(clock=clock)
        self.config = config or FixedWindowConfig()

    @property
    def tracks_outcomes(self) -> bool:  # type: ignore[override]
        return self.config.skip_successful_requests or self.config.skip_failed_requests

    def _should_skip(self, request: Any) -> bool:
        skip = self.config.skip
        return skip is not None and request is not None and bool(skip(request))

    def check(
        self,
        key: str,
        *,
        request: Any = None,
        now_ms: int | None = None,
    ) -> Decision:
        cfg = self.config
        if self._should_skip(request):
            return Decision(admitted=True, limit=cfg.limit, remaining=cfg.limit, skipped=True)

        now = self.now(now_ms)
        with self._store.locked(key) as entries:
            state = entries.get(key)
            if state is None or now >= state.window_start_ms + cfg.window_ms:
                state = _WindowState(window_start_ms=now, count=0)
                entries[key] = state
            state.count += 1
            count = state.count
            window_start = state.window_start_ms

        reset_after = ceil_seconds(window_start + cfg.window_ms - now)
        if count <= cfg.limit:
            return Decision(
                admitted=True,
                limit=cfg.limit,
                remaining=cfg.limit - count,
                reset_after_seconds=reset_after,
                window_start_ms=window_start,
            )

        return Decision(
            admitted=False,
            limit=cfg.limit,
            remaining=0,
            retry_after_seconds=reset_after,
            reset_after_seconds=reset_after,
            message=cfg.message,
            window_start_ms=window_start,
        )

    def record_outcome(self, key: str, decision: Decision, *, succeeded: bool) -> None:
        """Give back a counted request when its outcome is exempt.

        The decrement only applies to the window the request was counted in;
        once the window has rolled over there is nothing left to give back.
        """

        cfg = self.config
        exempt = (cfg.skip_successful_requests and succeeded) or (
            cfg.skip_failed_requests and not succeeded
        )
        if not exempt or decision.window_start_ms is None:
            return

        with self._store.locked(key) as entries:
            state = entries.get(key)
            if state is None or state.window_start_ms != decision.window_start_ms:
                return
            if state.count > 0:
                state.count -= 1


def create_custom_policy(
    window_ms: int = 60_000,
    limit: int = 30,
    message: str = DEFAULT_MESSAGE,
    *,
    clock: Clock = monotonic_ms,
) -> FixedWindowPolicy:
    """Build an independent fixed-window policy with its own counter store.

    Args:
        window_ms: Window length in milliseconds.
        limit: Requests allowed per key per window.
        message: Message returned on rejection.
        clock: Monotonic millisecond time source.

    Returns:
        A new FixedWindowPolicy; calling this twice never yields shared state.

    Raises:
        ValueError: If window_ms or limit are out of range.
    """

    return FixedWindowPolicy(
        FixedWindowConfig(window_ms=window_ms, limit=limit, message=message),
        clock=clock,
    )
