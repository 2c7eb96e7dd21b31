"""Unit tests for the self-cleaning sliding-window policy."""

import asyncio
from unittest.mock import Mock

import pytest

from playex.adapters.rate_limit.sliding_window import SlidingWindowConfig, SlidingWindowPolicy
from playex.adapters.rate_limit.sweeper import PeriodicSweeper


def _policy(clock: Mock | None = None, **overrides) -> SlidingWindowPolicy:
    params = {"window_ms": 60_000, "limit": 3}
    params.update(overrides)
    if clock is None:
        return SlidingWindowPolicy(SlidingWindowConfig(**params))
    return SlidingWindowPolicy(SlidingWindowConfig(**params), clock=clock)


def test_defaults() -> None:
    config = SlidingWindowConfig()

    assert config.window_ms == 60_000
    assert config.limit == 100
    assert config.sweep_interval_ms == 5 * 60 * 1000


def test_retry_hint_is_anchored_to_the_oldest_attempt() -> None:
    policy = _policy()

    for now in (1_000, 2_000, 3_000):
        assert policy.check("k", now_ms=now).admitted is True

    rejected = policy.check("k", now_ms=4_000)

    assert rejected.admitted is False
    assert rejected.retry_after_seconds == 57
    assert rejected.remaining == 0


def test_expired_attempts_linger_until_the_sweep() -> None:
    policy = _policy(limit=1)

    policy.check("k", now_ms=0)

    late = policy.check("k", now_ms=120_000)
    assert late.admitted is False
    assert late.retry_after_seconds == 0


def test_sweep_evicts_idle_keys() -> None:
    policy = _policy(limit=2)
    for now in (0, 1, 2):
        policy.check("1.2.3.4", now_ms=now)
    assert policy.check("1.2.3.4", now_ms=3).admitted is False

    removed = policy.sweep(now_ms=60_010)

    assert removed == 1
    assert policy.stats()["keys"] == 0

    fresh = policy.check("1.2.3.4", now_ms=60_011)
    assert fresh.admitted is True
    assert fresh.remaining == 1


def test_sweep_keeps_recent_attempts() -> None:
    policy = _policy(limit=2)
    policy.check("k", now_ms=0)
    policy.check("k", now_ms=50_000)

    assert policy.sweep(now_ms=70_000) == 0
    assert policy.stats()["keys"] == 1

    # only the 50s attempt survived, so one more fits
    assert policy.check("k", now_ms=70_001).admitted is True
    assert policy.check("k", now_ms=70_002).admitted is False


def test_sweep_uses_the_policy_clock() -> None:
    clock = Mock(return_value=0)
    policy = _policy(clock=clock)
    policy.check("k")

    clock.return_value = 60_000
    assert policy.sweep() == 1


def test_background_sweep_runs_until_stopped() -> None:
    clock = Mock(return_value=0)
    policy = _policy(clock=clock, sweep_interval_ms=10)

    async def scenario() -> None:
        policy.check("k")
        clock.return_value = 120_000
        await policy.start()
        assert policy.sweeping is True
        for _ in range(50):
            if policy.stats()["keys"] == 0:
                break
            await asyncio.sleep(0.01)
        await policy.stop()

    asyncio.run(scenario())

    assert policy.stats()["keys"] == 0
    assert policy.sweeping is False


def test_async_context_manager_owns_the_sweeper() -> None:
    policy = _policy(sweep_interval_ms=1_000)

    async def scenario() -> bool:
        async with policy:
            return policy.sweeping

    assert asyncio.run(scenario()) is True
    assert policy.sweeping is False


def test_stop_without_start_is_a_noop() -> None:
    policy = _policy()

    asyncio.run(policy.stop())

    assert policy.sweeping is False


def test_sweeper_can_be_stopped_twice_and_restarted() -> None:
    sweeper = PeriodicSweeper(Mock(return_value=0), interval_seconds=0.01, name="test")

    async def scenario() -> None:
        await sweeper.start()
        await sweeper.stop()
        await sweeper.stop()
        assert sweeper.running is False
        await sweeper.start()
        assert sweeper.running is True
        await sweeper.stop()

    asyncio.run(scenario())

    assert sweeper.running is False


@pytest.mark.parametrize(
    "kwargs",
    [
        {"window_ms": 0},
        {"limit": 0},
        {"sweep_interval_ms": 0},
    ],
)
def test_invalid_config_fails_fast(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        SlidingWindowConfig(**kwargs)
