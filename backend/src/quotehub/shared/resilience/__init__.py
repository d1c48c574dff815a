"""Outbound-call resilience: circuit breaking, retries and request coalescing."""

from quotehub.shared.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitPermit,
    CircuitSnapshot,
    CircuitState,
)
from quotehub.shared.resilience.client import ResilientClient
from quotehub.shared.resilience.dedup import InFlightCoalescer, request_key
from quotehub.shared.resilience.retry import RetryPolicy, is_retryable

__all__ = [
    "CircuitBreaker",
    "CircuitPermit",
    "CircuitSnapshot",
    "CircuitState",
    "InFlightCoalescer",
    "ResilientClient",
    "RetryPolicy",
    "is_retryable",
    "request_key",
]
