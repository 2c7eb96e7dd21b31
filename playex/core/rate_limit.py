"""Rate limiting dependency for FastAPI routes.

This module wires admission policies into the HTTP layer.

- ``RateLimitDependency`` runs once per request, before the route body. It
  derives the client key, asks the policy for a ``Decision`` and raises
  ``RateLimitAppError`` (rendered as HTTP 429) when the request is rejected.
- Admitted requests leave an ``AdmissionTicket`` on ``request.state``;
  ``admission_outcome_middleware`` picks it up once the response exists to
  add rate-limit headers and report the outcome to policies that count
  conditionally (``skip_successful_requests``).
- Rejected requests are reported as failures straight away, so a limiter
  with ``skip_failed_requests`` gives the hit of a 429 back.

Presets mirror the backend's two shared limiters: a general one applied to
every route and a strict one for authentication endpoints.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Any

from fastapi import Request

from playex.adapters.rate_limit.backoff import BackoffConfig, BackoffPolicy
from playex.adapters.rate_limit.base import AdmissionPolicy, Decision
from playex.adapters.rate_limit.fixed_window import FixedWindowConfig, FixedWindowPolicy
from playex.adapters.rate_limit.sliding_window import SlidingWindowConfig, SlidingWindowPolicy
from playex.core.config import AppSettings
from playex.core.errors import ConfigurationAppError, RateLimitAppError

logger = logging.getLogger(__name__)

FIFTEEN_MINUTES_MS = 15 * 60 * 1000

HEALTH_CHECK_PATHS = frozenset({"/health", "/"})

GENERAL_MESSAGE = "Too many requests from this IP, please try again later."
AUTH_MESSAGE = "Too many login attempts, please try again after 15 minutes"

_TICKETS_ATTR = "admission_tickets"


def is_health_check(request: Any) -> bool:
    """Skip predicate exempting the health and root endpoints."""
    return request.url.path in HEALTH_CHECK_PATHS


def client_key(request: Request, *, trust_forwarded: bool = False) -> str:
    """Build the limiter key for the current request.

    Args:
        request: FastAPI request.
        trust_forwarded: Use the first ``X-Forwarded-For`` hop, for
            deployments behind a reverse proxy.

    Returns:
        str: Client address, never empty.
    """

    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _hash_client_key(key: str) -> str:
    """Hash the client key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def build_rate_limit_headers(
    decision: Decision,
    *,
    standard: bool,
    legacy: bool,
    now: float | None = None,
) -> dict[str, str]:
    """Render the rate-limit headers for a decision.

    ``RateLimit-Reset`` is the number of seconds until the window frees up;
    ``X-RateLimit-Reset`` is the UNIX epoch second at which it does.

    Args:
        decision: Admission decision.
        standard: Include ``RateLimit-*`` headers.
        legacy: Include ``X-RateLimit-*`` headers.
        now: Current UNIX time in seconds; defaults to ``time.time()``.

    Returns:
        Header mapping; always carries ``Retry-After`` for rejections.
    """

    headers: dict[str, str] = {}
    reset_after = decision.reset_after_seconds
    if standard:
        headers["RateLimit-Limit"] = str(decision.limit)
        headers["RateLimit-Remaining"] = str(decision.remaining)
        if reset_after is not None:
            headers["RateLimit-Reset"] = str(reset_after)
    if legacy:
        headers["X-RateLimit-Limit"] = str(decision.limit)
        headers["X-RateLimit-Remaining"] = str(decision.remaining)
        if reset_after is not None:
            now = time.time() if now is None else now
            headers["X-RateLimit-Reset"] = str(math.ceil(now + reset_after))

    if not decision.admitted and decision.retry_after_seconds is not None:
        headers["Retry-After"] = str(decision.retry_after_seconds)
    return headers


@dataclass(frozen=True)
class AdmissionTicket:
    """An admitted request waiting for its response to be finalized."""

    limiter: "RateLimitDependency"
    key: str
    decision: Decision


class RateLimitDependency:
    """FastAPI dependency enforcing one admission policy.

    Usage:
        auth_limit = create_auth_rate_limit()

        @router.post("/login", dependencies=[Depends(auth_limit)])
        async def login(): ...
    """

    def __init__(
        self,
        policy: AdmissionPolicy,
        *,
        name: str = "default",
        standard_headers: bool = True,
        legacy_headers: bool = False,
        trust_forwarded: bool = False,
    ) -> None:
        self.policy = policy
        self.name = name
        self.standard_headers = standard_headers
        self.legacy_headers = legacy_headers
        self.trust_forwarded = trust_forwarded

    async def __call__(self, request: Request) -> None:
        """Admit the request or raise HTTP 429.

        Args:
            request: FastAPI request.

        Raises:
            RateLimitAppError: When the policy rejects the request.
        """

        key = client_key(request, trust_forwarded=self.trust_forwarded)
        decision = self.policy.check(key, request=request)
        if decision.skipped:
            return

        key_hash = _hash_client_key(key)

        if decision.admitted:
            logger.info(
                "rate_limit.allowed",
                extra={
                    "limiter": self.name,
                    "key_hash": key_hash,
                    "limit": decision.limit,
                    "remaining": decision.remaining,
                },
            )
            tickets = getattr(request.state, _TICKETS_ATTR, None)
            if tickets is None:
                tickets = []
                setattr(request.state, _TICKETS_ATTR, tickets)
            tickets.append(AdmissionTicket(limiter=self, key=key, decision=decision))
            return

        retry_after = decision.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "limiter": self.name,
                "key_hash": key_hash,
                "limit": decision.limit,
                "retry_after_s": retry_after,
            },
        )

        headers = build_rate_limit_headers(
            decision,
            standard=self.standard_headers,
            legacy=self.legacy_headers,
        )
        if self.policy.tracks_outcomes:
            self.policy.record_outcome(key, decision, succeeded=False)

        headers.setdefault("Retry-After", str(retry_after))
        raise RateLimitAppError(
            code="rate_limited",
            message=decision.message or "Too many requests",
            details={"retry_after": retry_after, "limit": decision.limit},
            headers=headers,
        )

    def finalize(self, ticket: AdmissionTicket, *, status_code: int | None) -> dict[str, str]:
        """Report the response outcome and return headers to attach.

        Args:
            ticket: Ticket created when the request was admitted.
            status_code: Final response status, or None if the route raised.

        Returns:
            Rate-limit headers for the response.
        """

        if self.policy.tracks_outcomes:
            succeeded = status_code is not None and status_code < 400
            self.policy.record_outcome(ticket.key, ticket.decision, succeeded=succeeded)

        return build_rate_limit_headers(
            ticket.decision,
            standard=self.standard_headers,
            legacy=self.legacy_headers,
        )


def pop_admission_tickets(request: Request) -> list[AdmissionTicket]:
    """Remove and return the tickets left on the request by limiters."""
    tickets = getattr(request.state, _TICKETS_ATTR, None) or []
    setattr(request.state, _TICKETS_ATTR, [])
    return tickets


def create_general_rate_limit(*, trust_forwarded: bool = False) -> RateLimitDependency:
    """General-purpose limiter: 100 requests per 15 minutes, health checks exempt."""
    policy = FixedWindowPolicy(
        FixedWindowConfig(
            window_ms=FIFTEEN_MINUTES_MS,
            limit=100,
            message=GENERAL_MESSAGE,
            skip=is_health_check,
        )
    )
    return RateLimitDependency(policy, name="general", trust_forwarded=trust_forwarded)


def create_auth_rate_limit(*, trust_forwarded: bool = False) -> RateLimitDependency:
    """Strict limiter for authentication endpoints.

    Allows 5 attempts per 15 minutes; successful responses give their
    attempt back, so only failures use up the budget.
    """
    policy = FixedWindowPolicy(
        FixedWindowConfig(
            window_ms=FIFTEEN_MINUTES_MS,
            limit=5,
            message=AUTH_MESSAGE,
            skip_successful_requests=True,
        )
    )
    return RateLimitDependency(
        policy,
        name="auth",
        standard_headers=False,
        legacy_headers=True,
        trust_forwarded=trust_forwarded,
    )


def build_policy(app_settings: AppSettings) -> AdmissionPolicy:
    """Build the general limiter's policy from settings.

    Args:
        app_settings: Application settings.

    Returns:
        A fresh policy for the configured strategy.

    Raises:
        ConfigurationAppError: If the strategy name is unknown.
    """

    strategy = app_settings.rate_limit_strategy
    if strategy == "fixed_window":
        return FixedWindowPolicy(
            FixedWindowConfig(
                window_ms=app_settings.rate_limit_window_ms,
                limit=app_settings.rate_limit_max,
                message=GENERAL_MESSAGE,
                skip=is_health_check,
            )
        )
    if strategy == "sliding_window":
        return SlidingWindowPolicy(
            SlidingWindowConfig(
                window_ms=app_settings.rate_limit_window_ms,
                limit=app_settings.rate_limit_max,
                sweep_interval_ms=app_settings.rate_limit_sweep_interval_ms,
            )
        )
    if strategy == "backoff":
        return BackoffPolicy(
            BackoffConfig(
                max_attempts=app_settings.rate_limit_backoff_max_attempts,
                base_delay_ms=app_settings.rate_limit_backoff_base_delay_ms,
            )
        )

    raise ConfigurationAppError(
        code="unknown_rate_limit_strategy",
        message=f"Unknown rate limit strategy: {strategy!r}",
        details={"strategy": str(strategy)},
    )


def build_general_rate_limit(app_settings: AppSettings) -> RateLimitDependency:
    """Build the app-wide limiter dependency from settings."""
    return RateLimitDependency(
        build_policy(app_settings),
        name="general",
        standard_headers=app_settings.rate_limit_standard_headers,
        legacy_headers=app_settings.rate_limit_legacy_headers,
        trust_forwarded=app_settings.rate_limit_trust_forwarded,
    )
