"""Request admission policies.

Process-local, client-keyed limiters sharing one ``AdmissionPolicy``
interface, so the HTTP layer can swap strategies without code changes.
"""

from playex.adapters.rate_limit.backoff import BackoffConfig, BackoffPolicy
from playex.adapters.rate_limit.base import AdmissionPolicy, Decision
from playex.adapters.rate_limit.fixed_window import (
    FixedWindowConfig,
    FixedWindowPolicy,
    create_custom_policy,
)
from playex.adapters.rate_limit.sliding_window import SlidingWindowConfig, SlidingWindowPolicy

__all__ = [
    "AdmissionPolicy",
    "BackoffConfig",
    "BackoffPolicy",
    "Decision",
    "FixedWindowConfig",
    "FixedWindowPolicy",
    "SlidingWindowConfig",
    "SlidingWindowPolicy",
    "create_custom_policy",
]
