"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.  Only
``ValidationError`` and ``GeocodeError`` are fatal to a quote aggregation;
everything else degrades into a per-provider message.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ───────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str, *, field: str | None = None, value: Any = None) -> None:
        super().__init__(message, code="VALIDATION_ERROR")
        self.field = field
        self.value = value


# ── Providers / remote dependencies ─────────────────────────
class ProviderError(DomainError):
    """A single remote dependency (carrier, geocoder, router) failed."""

    def __init__(self, provider: str, message: str, *, code: str = "PROVIDER_ERROR") -> None:
        super().__init__(message, code=code)
        self.provider = provider


class ProviderTimeoutError(ProviderError):
    def __init__(self, provider: str, timeout_s: float) -> None:
        super().__init__(
            provider,
            f"{provider} did not respond within {timeout_s:g}s",
            code="PROVIDER_TIMEOUT",
        )
        self.timeout_s = timeout_s


class CircuitOpenError(ProviderError):
    def __init__(self, provider: str, retry_after_s: float) -> None:
        super().__init__(
            provider,
            f"Circuit for {provider} is open; retry in {retry_after_s:.1f}s",
            code="CIRCUIT_OPEN",
        )
        self.retry_after_s = retry_after_s


# ── Geocoding ────────────────────────────────────────────────
class GeocodeError(DomainError):
    """Every fallback strategy was exhausted for an address."""

    def __init__(self, address: str, attempts: list[str] | None = None) -> None:
        super().__init__(
            f"Could not geocode address {address!r}",
            code="GEOCODE_ERROR",
        )
        self.address = address
        self.attempts = list(attempts or [])


# ── Cache ────────────────────────────────────────────────────
class CacheError(DomainError):
    def __init__(self, message: str) -> None:
        super().__init__(message, code="CACHE_ERROR")
