"""Shared key/time utilities for admission policies.

Policies keep their per-key state in a ``ShardedStore``: keys are spread
across a fixed number of shards, each one a plain dict guarded by its own
lock. Every read-modify-write for a key happens while holding that key's
shard lock, so concurrent requests from the same client never interleave.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

T = TypeVar("T")

Clock = Callable[[], int]

DEFAULT_SHARD_COUNT = 16


def monotonic_ms() -> int:
    """Return a monotonic timestamp in integer milliseconds."""

    return time.monotonic_ns() // 1_000_000


class _Shard(Generic[T]):
    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: dict[str, T] = {}


class ShardedStore(Generic[T]):
    """Mapping of client keys to policy state with per-shard locking.

    Attributes:
        shard_count: Number of independent lock domains.
    """

    def __init__(self, shard_count: int = DEFAULT_SHARD_COUNT) -> None:
        if shard_count < 1:
            raise ValueError("shard_count must be >= 1")
        self.shard_count = shard_count
        self._shards: tuple[_Shard[T], ...] = tuple(_Shard() for _ in range(shard_count))

    def _shard_for(self, key: str) -> _Shard[T]:
        return self._shards[hash(key) % self.shard_count]

    @contextmanager
    def locked(self, key: str) -> Iterator[dict[str, T]]:
        """Yield the dict holding ``key`` while its shard lock is held.

        Args:
            key: Client key whose shard should be locked.

        Yields:
            The shard's entry dict. Callers may read, insert or delete
            ``key`` in it; other keys in the same shard must be left alone.
        """

        shard = self._shard_for(key)
        with shard.lock:
            yield shard.entries

    def sweep(self, visit: Callable[[dict[str, T]], int]) -> int:
        """Run ``visit`` over every shard, one shard lock at a time.

        Args:
            visit: Callback mutating a shard's entries in place and returning
                the number of keys it removed.

        Returns:
            Total number of keys removed across all shards.
        """

        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += visit(shard.entries)
        return removed

    def clear(self) -> None:
        for shard in self._shards:
            with shard.lock:
                shard.entries.clear()

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        shard = self._shard_for(key)
        with shard.lock:
            return key in shard.entries

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total
