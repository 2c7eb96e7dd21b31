"""Exponential backoff admission policy.

Keeps every attempt of the last 24 hours per key. Once a key is over
``max_attempts``, the suggested wait doubles with each further attempt:
``base_delay_ms * 2 ** (attempts - max_attempts)``, capped at the 24-hour
retention (``MAX_RETRY_AFTER_SECONDS``).

Old attempts are pruned lazily on each check; there is no background sweep,
so a key that stops sending requests keeps its last log until it calls again.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from playex.adapters.rate_limit.base import (
    DEFAULT_MESSAGE,
    AdmissionPolicy,
    Decision,
    ceil_seconds,
)
from playex.adapters.rate_limit.store import Clock, monotonic_ms

RETENTION_MS = 24 * 60 * 60 * 1000
MAX_RETRY_AFTER_SECONDS = RETENTION_MS // 1000


class BackoffConfig(BaseModel):
    """Validated configuration for ``BackoffPolicy``."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(5, ge=1, description="Attempts admitted per 24 hours")
    base_delay_ms: int = Field(1000, gt=0, description="Base delay in milliseconds, doubled per excess attempt")
    message: str = Field(DEFAULT_MESSAGE, description="Message returned on rejection")


class BackoffPolicy(AdmissionPolicy):
    """Reject repeat offenders with exponentially growing retry hints."""

    def __init__(self, config: BackoffConfig | None = None, *, clock: Clock = monotonic_ms) -> None:
        super().__init__(clock=clock)
        self.config = config or BackoffConfig()

    def check(self, key: str, *, request: Any = None, now_ms: int | None = None) -> Decision:
        cfg = self.config
        now = self.now(now_ms)

        with self._store.locked(key) as entries:
            attempts = [t for t in entries.get(key, ()) if now - t < RETENTION_MS]
            attempts.append(now)
            entries[key] = attempts
            count = len(attempts)

        if count <= cfg.max_attempts:
            return Decision(
                admitted=True,
                limit=cfg.max_attempts,
                remaining=cfg.max_attempts - count,
            )

        backoff_ms = _backoff_ms(cfg.base_delay_ms, count - cfg.max_attempts)
        return Decision(
            admitted=False,
            limit=cfg.max_attempts,
            remaining=0,
            retry_after_seconds=ceil_seconds(backoff_ms),
            message=cfg.message,
        )


def _backoff_ms(base_delay_ms: int, excess: int) -> int:
    """Exponential delay for ``excess`` attempts over the limit, capped at the retention."""
    delay = base_delay_ms
    for _ in range(excess):
        if delay >= RETENTION_MS:
            break
        delay *= 2
    return min(delay, RETENTION_MS)
