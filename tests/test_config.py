"""Tests for settings defaults and the strategy wiring."""

import pytest

from playex.adapters.rate_limit import BackoffPolicy, FixedWindowPolicy, SlidingWindowPolicy
from playex.core.config import AppSettings, LogSettings
from playex.core.rate_limit import build_general_rate_limit, build_policy


def test_defaults_match_the_general_limiter():
    cfg = AppSettings()

    assert cfg.rate_limit_strategy == "fixed_window"
    assert cfg.rate_limit_window_ms == 15 * 60 * 1000
    assert cfg.rate_limit_max == 100
    assert cfg.rate_limit_standard_headers is True
    assert cfg.rate_limit_legacy_headers is False


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("APP_RATE_LIMIT_STRATEGY", "sliding_window")
    monkeypatch.setenv("APP_RATE_LIMIT_MAX", "7")
    monkeypatch.setenv("LOG_FORMAT", "plain")

    assert AppSettings().rate_limit_strategy == "sliding_window"
    assert AppSettings().rate_limit_max == 7
    assert LogSettings().format == "plain"


@pytest.mark.parametrize(
    ("strategy", "expected"),
    [
        ("fixed_window", FixedWindowPolicy),
        ("sliding_window", SlidingWindowPolicy),
        ("backoff", BackoffPolicy),
    ],
)
def test_build_policy_per_strategy(strategy, expected):
    policy = build_policy(AppSettings(rate_limit_strategy=strategy, rate_limit_max=3))

    assert isinstance(policy, expected)


def test_build_policy_applies_window_settings():
    policy = build_policy(AppSettings(rate_limit_window_ms=1_000, rate_limit_max=2))

    assert policy.config.window_ms == 1_000
    assert policy.config.limit == 2


def test_each_build_returns_fresh_state():
    cfg = AppSettings(rate_limit_max=1)
    first = build_general_rate_limit(cfg)
    second = build_general_rate_limit(cfg)

    first.policy.check("k")

    assert first.policy.check("k").admitted is False
    assert second.policy.check("k").admitted is True


def test_invalid_numbers_are_rejected():
    with pytest.raises(ValueError):
        AppSettings(rate_limit_max=0)
