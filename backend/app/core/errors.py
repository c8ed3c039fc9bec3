"""
Centralized error handling for discovery and report submission.
Domain exceptions plus one helper so routes stay thin and new error types are easy to add.

Only user-actionable conditions (rate limit, not found, slug exhaustion) cross the API
boundary. Provider and cache faults are absorbed by the services that call them.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable

from fastapi import HTTPException

# ---------------------------------------------------------------------------
# Constants: status codes and user-facing messages
# ---------------------------------------------------------------------------

STATUS_NOT_FOUND = 404
STATUS_CONFLICT = 409
STATUS_TOO_MANY_REQUESTS = 429
STATUS_INTERNAL_ERROR = 500
STATUS_BAD_GATEWAY = 502  # provider down or malformed
STATUS_GATEWAY_TIMEOUT = 504  # discovery deadline or catalog read timeout

MSG_RATE_LIMITED = "Rate limit exceeded. Please wait before submitting another report."
MSG_VENUE_NOT_FOUND = "Venue not found"
MSG_PROVIDER_FAILED = "Failed to fetch place details"
MSG_TIMED_OUT = "Request timed out"


class VibeCheckError(Exception):
    """Base for all domain errors."""


class RateLimitExceeded(VibeCheckError):
    def __init__(self, reset_at: datetime, remaining: int = 0) -> None:
        super().__init__(f"rate limit exceeded until {reset_at.isoformat()}")
        self.reset_at = reset_at
        self.remaining = remaining


class VenueNotFound(VibeCheckError):
    def __init__(self, slug: str) -> None:
        super().__init__(f"venue not found: {slug}")
        self.slug = slug


class SlugConflict(VibeCheckError):
    """No free slug within the bounded suffix retry."""

    def __init__(self, base_slug: str, attempts: int) -> None:
        super().__init__(f"no free slug for {base_slug!r} after {attempts} attempts")
        self.base_slug = base_slug
        self.attempts = attempts


class ProviderError(VibeCheckError):
    """External places provider failed. Discovery degrades to no external results."""


class ProviderUnavailable(ProviderError):
    """Transport failure, non-success HTTP status, or provider not configured."""


class ProviderBadResponse(ProviderError):
    """Malformed payload or provider-reported error status."""


class CacheBackendUnavailable(VibeCheckError):
    """Shared store call failed. Never surfaced; triggers the process-local fallback."""


def rate_limit_headers(remaining: int, reset_at: datetime) -> dict[str, str]:
    return {
        "X-RateLimit-Remaining": str(remaining),
        "X-RateLimit-Reset": reset_at.isoformat(),
    }


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code, detail builder, headers builder)
# Add new rules here instead of scattering checks in routes. First match wins.
# ---------------------------------------------------------------------------

def _rate_limited_detail(exc: RateLimitExceeded) -> dict[str, Any]:
    return {"error": MSG_RATE_LIMITED, "reset_time": exc.reset_at.isoformat()}


def _rate_limited_headers(exc: RateLimitExceeded) -> dict[str, str]:
    return rate_limit_headers(exc.remaining, exc.reset_at)


ERROR_RULES: list[tuple[type[Exception], int, Callable[[Any], Any], Callable[[Any], dict[str, str]] | None]] = [
    (RateLimitExceeded, STATUS_TOO_MANY_REQUESTS, _rate_limited_detail, _rate_limited_headers),
    (VenueNotFound, STATUS_NOT_FOUND, lambda exc: MSG_VENUE_NOT_FOUND, None),
    (SlugConflict, STATUS_CONFLICT, lambda exc: str(exc), None),
    (ProviderError, STATUS_BAD_GATEWAY, lambda exc: MSG_PROVIDER_FAILED, None),
    (asyncio.TimeoutError, STATUS_GATEWAY_TIMEOUT, lambda exc: MSG_TIMED_OUT, None),
]


def domain_error_to_http(exc: Exception) -> HTTPException:
    """
    Map a service exception into an HTTPException.
    Uses ERROR_RULES for known error types; otherwise returns 500 with the exception message.
    """
    for exc_type, status_code, detail, headers in ERROR_RULES:
        if isinstance(exc, exc_type):
            return HTTPException(
                status_code=status_code,
                detail=detail(exc),
                headers=headers(exc) if headers else None,
            )
    return HTTPException(status_code=STATUS_INTERNAL_ERROR, detail=str(exc))
