"""Retry policy for outbound calls, built on tenacity."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential_jitter,
)

from quotehub.domain.exceptions import ProviderTimeoutError
from quotehub.shared.observability.metrics import OUTBOUND_RETRIES

logger = structlog.get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff with jitter.

    Attributes:
        max_attempts:  Total tries including the first one.
        backoff_base:  Initial wait in seconds, doubled per attempt.
        backoff_max:   Ceiling on the exponential part of the wait.
        jitter:        Upper bound of the random extra added to each wait.
        max_elapsed:   Optional total budget in seconds; no new attempt starts
                       once it is spent.
    """

    max_attempts: int = 3
    backoff_base: float = 0.5
    backoff_max: float = 8.0
    jitter: float = 0.5
    max_elapsed: float | None = None

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_attempts=1, backoff_base=0.0, backoff_max=0.0, jitter=0.0)


def is_retryable(exc: BaseException) -> bool:
    """Timeouts, transport failures and HTTP 5xx/429 are worth another try."""
    if isinstance(exc, (ProviderTimeoutError, asyncio.TimeoutError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status in RETRYABLE_STATUS_CODES or status >= 500
    return isinstance(exc, (httpx.TimeoutException, httpx.TransportError))


def build_retrying(policy: RetryPolicy, dependency: str) -> AsyncRetrying:
    def _before_sleep(state: RetryCallState) -> None:
        OUTBOUND_RETRIES.labels(dependency=dependency).inc()
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "outbound_call_retrying",
            dependency=dependency,
            attempt=state.attempt_number,
            sleep_s=round(state.next_action.sleep, 3) if state.next_action else 0.0,
            error=str(exc),
        )

    stop = stop_after_attempt(policy.max_attempts)
    if policy.max_elapsed is not None:
        stop = stop | stop_after_delay(policy.max_elapsed)

    return AsyncRetrying(
        stop=stop,
        wait=wait_exponential_jitter(
            initial=policy.backoff_base,
            max=policy.backoff_max,
            jitter=policy.jitter,
        ),
        retry=retry_if_exception(is_retryable),
        before_sleep=_before_sleep,
        reraise=True,
    )
