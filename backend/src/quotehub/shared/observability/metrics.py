"""Prometheus metrics for the quote service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Carrier metrics ──────────────────────────────────────────
PROVIDER_CALLS = Counter(
    "provider_calls_total",
    "Carrier quote calls by terminal outcome",
    ["provider", "outcome"],  # success / timeout / circuit_open / rejected / error
)

PROVIDER_LATENCY = Histogram(
    "provider_call_duration_seconds",
    "Carrier quote call latency",
    ["provider"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0),
)

# ── Resilience metrics ───────────────────────────────────────
CIRCUIT_TRANSITIONS = Counter(
    "circuit_breaker_transitions_total",
    "Circuit breaker state transitions",
    ["dependency", "state"],
)

OUTBOUND_RETRIES = Counter(
    "outbound_retries_total",
    "Retried outbound calls",
    ["dependency"],
)

# ── Geocoding metrics ────────────────────────────────────────
ROUTE_CACHE_LOOKUPS = Counter(
    "route_cache_lookups_total",
    "Route cache lookups",
    ["result"],  # hit / miss / error
)

GEOCODE_ATTEMPTS = Counter(
    "geocode_attempts_total",
    "Geocoding strategy attempts",
    ["strategy", "outcome"],  # resolved / out_of_region / empty / error
)
