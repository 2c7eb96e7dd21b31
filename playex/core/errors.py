"""Application-level exception types.

This module defines domain errors used across the HTTP layer, enabling
consistent error handling, logging, and API responses.

Admission rejections are not errors inside the policies (they return a
``Decision``); ``RateLimitAppError`` only exists so the HTTP adapter can
short-circuit a route and let the exception handlers render the 429.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    retry_after: int
    limit: int
    strategy: str


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ConfigurationAppError(AppError):
    """Raised when the application cannot be built from its settings."""


@dataclass
class RateLimitAppError(AppError):
    """Raised by the HTTP adapter when a request is not admitted.

    Attributes:
        headers: Response headers (Retry-After and rate-limit headers).
    """

    headers: dict[str, str] = field(default_factory=dict)
