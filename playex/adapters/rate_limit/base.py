"""Admission policy interfaces.

The HTTP layer depends on this abstraction (not on a concrete policy) so the
general limiter can switch between fixed-window, backoff and sliding-window
strategies through configuration alone.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from playex.adapters.rate_limit.store import Clock, ShardedStore, monotonic_ms

DEFAULT_MESSAGE = "Too many requests"


@dataclass(frozen=True)
class Decision:
    """Result of one admission check.

    A rejection is a normal outcome and is always returned as a Decision,
    never raised.

    Attributes:
        admitted: Whether the request may proceed to business logic.
        limit: Maximum number of requests the policy allows per window.
        remaining: Requests left before the key is rejected (0 when blocked).
        retry_after_seconds: Advisory wait in seconds when blocked.
        reset_after_seconds: Seconds until the current window frees up, when
            the policy can tell.
        message: Human-readable rejection message.
        window_start_ms: Start of the window the call was counted in, used
            to match outcome reports to the right window.
        skipped: The request was exempt and left no trace in the policy.
    """

    admitted: bool
    limit: int
    remaining: int
    retry_after_seconds: int | None = None
    reset_after_seconds: int | None = None
    message: str | None = None
    window_start_ms: int | None = None
    skipped: bool = False


def ceil_seconds(milliseconds: int) -> int:
    """Convert a millisecond span to whole seconds, rounding up, never negative."""

    return max(0, int(-(-milliseconds // 1000)))


class AdmissionPolicy(ABC):
    """Interface for per-client admission policies.

    Each instance owns its own ``ShardedStore``; two instances never share
    counters, even when built with identical parameters.
    """

    #: Whether the HTTP layer must report response outcomes back.
    tracks_outcomes: bool = False

    def __init__(self, *, clock: Clock = monotonic_ms) -> None:
        self._clock = clock
        self._store: ShardedStore[Any] = ShardedStore()

    def now(self, now_ms: int | None = None) -> int:
        return self._clock() if now_ms is None else now_ms

    @abstractmethod
    def check(
        self,
        key: str,
        *,
        request: Any = None,
        now_ms: int | None = None,
    ) -> Decision:
        """Record one request for ``key`` and decide whether to admit it.

        Args:
            key: Client key (typically the client IP). Must be non-empty;
                the caller is responsible for providing one.
            request: Opaque request descriptor, only used by skip predicates.
            now_ms: Override for the current monotonic time in milliseconds.

        Returns:
            Decision describing whether the request was admitted.
        """
        raise NotImplementedError

    def record_outcome(self, key: str, decision: Decision, *, succeeded: bool) -> None:
        """Report the final outcome of an admitted request.

        Policies that do not count conditionally ignore this.
        """

    def stats(self) -> dict[str, Any]:
        """Return lightweight store metrics without exposing keys."""

        return {"policy": type(self).__name__, "keys": len(self._store)}
