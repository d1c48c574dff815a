"""Tests for the outbound resilience stack.

Covers CircuitBreaker, the retry policy, in-flight coalescing and the
ResilientClient that ties them together.
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest
from prometheus_client import REGISTRY

from conftest import FakeClock
from quotehub.domain.exceptions import CircuitOpenError, ProviderTimeoutError
from quotehub.shared.resilience import (
    CircuitBreaker,
    CircuitPermit,
    CircuitState,
    InFlightCoalescer,
    ResilientClient,
    RetryPolicy,
    is_retryable,
    request_key,
)

FAST_RETRY = RetryPolicy(max_attempts=3, backoff_base=0.0, backoff_max=0.0, jitter=0.0)


def _breaker(clock: FakeClock, **overrides) -> CircuitBreaker:
    params = dict(failure_threshold=3, recovery_timeout=10.0, success_threshold=2, clock=clock)
    params.update(overrides)
    return CircuitBreaker("test", **params)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://carrier.test/quote")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("boom", request=request, response=response)


# ═══════════════════════════════════════════════════════════════
#  CircuitBreaker
# ═══════════════════════════════════════════════════════════════
class TestCircuitBreaker:
    def test_starts_closed(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock)
        assert cb.state == CircuitState.CLOSED
        cb.acquire()

    def test_opens_after_threshold(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock)
        for _ in range(2):
            cb.record_failure()
        assert cb.state == CircuitState.CLOSED
        cb.record_failure()
        assert cb.state == CircuitState.OPEN

    def test_success_resets_failure_streak(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock)
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        cb.record_failure()
        assert cb.state == CircuitState.CLOSED
        assert cb.snapshot().consecutive_failures == 1

    def test_open_rejects_with_retry_after(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(4)
        with pytest.raises(CircuitOpenError) as exc_info:
            cb.acquire()
        assert exc_info.value.retry_after_s == pytest.approx(6.0)
        assert exc_info.value.code == "CIRCUIT_OPEN"

    def test_half_open_after_cooldown(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)
        assert cb.state == CircuitState.HALF_OPEN

    def test_half_open_admits_one_trial(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)
        cb.acquire()
        with pytest.raises(CircuitOpenError):
            cb.acquire()

    def test_half_open_closes_after_success_threshold(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)

        cb.record_success(cb.acquire())
        assert cb.state == CircuitState.HALF_OPEN

        cb.record_success(cb.acquire())
        assert cb.state == CircuitState.CLOSED
        assert cb.snapshot().consecutive_failures == 0

    def test_half_open_failure_reopens(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)
        cb.record_failure(cb.acquire())
        assert cb.state == CircuitState.OPEN
        with pytest.raises(CircuitOpenError):
            cb.acquire()

    def test_release_frees_trial_without_verdict(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)
        cb.release(cb.acquire())
        assert cb.state == CircuitState.HALF_OPEN
        cb.acquire()

    def test_reset_forces_closed(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        cb.reset()
        assert cb.state == CircuitState.CLOSED
        cb.acquire()

    def test_invalid_thresholds(self) -> None:
        with pytest.raises(ValueError):
            CircuitBreaker("bad", failure_threshold=0)

    def test_only_half_open_permits_are_trials(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        assert cb.acquire().trial is False
        cb.record_failure()
        fake_clock.advance(10)
        assert cb.acquire().trial is True

    def test_late_success_cannot_close_half_open(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1, success_threshold=1)
        slow = cb.acquire()
        cb.record_failure(cb.acquire())
        fake_clock.advance(10)
        trial = cb.acquire()

        cb.record_success(slow)

        snap = cb.snapshot()
        assert snap.state == CircuitState.HALF_OPEN
        assert snap.half_open_in_flight == 1
        cb.record_success(trial)
        assert cb.state == CircuitState.CLOSED

    def test_late_success_does_not_free_the_trial_slot(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1, success_threshold=2)
        slow = cb.acquire()
        cb.record_failure(cb.acquire())
        fake_clock.advance(10)
        cb.acquire()

        cb.record_success(slow)

        with pytest.raises(CircuitOpenError):
            cb.acquire()
        assert cb.snapshot().consecutive_successes == 0

    def test_late_failure_is_not_counted_twice(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        first, second = cb.acquire(), cb.acquire()
        cb.record_failure(first)
        cb.record_failure(second)
        assert cb.snapshot().consecutive_failures == 1

    def test_late_release_keeps_trial_slot_taken(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        slow = cb.acquire()
        cb.record_failure()
        fake_clock.advance(10)
        cb.acquire()

        cb.release(slow)

        assert cb.snapshot().half_open_in_flight == 1

    def test_reset_invalidates_outstanding_permits(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)
        trial = cb.acquire()
        cb.reset()

        cb.record_failure(trial)

        assert cb.state == CircuitState.CLOSED
        assert cb.snapshot().consecutive_failures == 0


def _transitions(dependency: str, state: str) -> float:
    value = REGISTRY.get_sample_value(
        "circuit_breaker_transitions_total", {"dependency": dependency, "state": state}
    )
    return value or 0.0


class TestCircuitBreakerConcurrency:
    def test_concurrent_failures_open_exactly_once(self, fake_clock: FakeClock) -> None:
        name = "concurrent-failures"
        cb = CircuitBreaker(name, failure_threshold=5, recovery_timeout=10.0, clock=fake_clock)
        permits = [cb.acquire() for _ in range(32)]
        barrier = threading.Barrier(len(permits))
        opened_before = _transitions(name, "open")

        def fail(permit: CircuitPermit) -> None:
            barrier.wait()
            cb.record_failure(permit)

        with ThreadPoolExecutor(max_workers=len(permits)) as pool:
            list(pool.map(fail, permits))

        assert _transitions(name, "open") - opened_before == 1
        snap = cb.snapshot()
        assert snap.state == CircuitState.OPEN
        assert snap.consecutive_failures == 5

    def test_concurrent_acquires_admit_one_trial(self, fake_clock: FakeClock) -> None:
        cb = _breaker(fake_clock, failure_threshold=1)
        cb.record_failure()
        fake_clock.advance(10)
        barrier = threading.Barrier(16)

        def try_acquire(_: int) -> bool:
            barrier.wait()
            try:
                cb.acquire()
            except CircuitOpenError:
                return False
            return True

        with ThreadPoolExecutor(max_workers=16) as pool:
            admitted = list(pool.map(try_acquire, range(16)))

        assert admitted.count(True) == 1
        assert cb.snapshot().half_open_in_flight == 1

    @pytest.mark.asyncio
    async def test_half_open_lets_one_call_reach_the_dependency(self, fake_clock: FakeClock) -> None:
        breaker = _breaker(fake_clock, failure_threshold=1, success_threshold=1)
        breaker.record_failure()
        fake_clock.advance(10)
        client = ResilientClient("svc", breaker=breaker, retry_policy=FAST_RETRY)
        calls = 0

        async def trial() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "ok"

        results = await asyncio.gather(*(client.call(trial) for _ in range(10)), return_exceptions=True)

        assert calls == 1
        assert results.count("ok") == 1
        assert sum(isinstance(r, CircuitOpenError) for r in results) == 9
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_call_admitted_before_opening_cannot_decide_the_trial(
        self, fake_clock: FakeClock
    ) -> None:
        breaker = _breaker(fake_clock, failure_threshold=1, success_threshold=1)
        client = ResilientClient("svc", breaker=breaker, retry_policy=RetryPolicy.no_retry())
        slow_done, trial_done = asyncio.Event(), asyncio.Event()

        async def blocked_until(event: asyncio.Event) -> str:
            await event.wait()
            return "ok"

        async def down() -> str:
            raise httpx.ConnectError("refused")

        slow = asyncio.create_task(client.call(lambda: blocked_until(slow_done)))
        await asyncio.sleep(0.01)
        with pytest.raises(httpx.ConnectError):
            await client.call(down)
        assert breaker.state == CircuitState.OPEN

        fake_clock.advance(10)
        trial = asyncio.create_task(client.call(lambda: blocked_until(trial_done)))
        await asyncio.sleep(0.01)
        slow_done.set()
        assert await slow == "ok"

        assert breaker.state == CircuitState.HALF_OPEN
        with pytest.raises(CircuitOpenError):
            await client.call(lambda: blocked_until(trial_done))

        trial_done.set()
        assert await trial == "ok"
        assert breaker.state == CircuitState.CLOSED


# ═══════════════════════════════════════════════════════════════
#  Retry classification
# ═══════════════════════════════════════════════════════════════
class TestIsRetryable:
    @pytest.mark.parametrize(
        "exc",
        [
            ProviderTimeoutError("x", 1.0),
            asyncio.TimeoutError(),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            _status_error(429),
            _status_error(500),
            _status_error(503),
        ],
    )
    def test_transient_errors(self, exc: BaseException) -> None:
        assert is_retryable(exc) is True

    @pytest.mark.parametrize(
        "exc",
        [ValueError("bad"), _status_error(400), _status_error(404), CircuitOpenError("x", 1.0)],
    )
    def test_permanent_errors(self, exc: BaseException) -> None:
        assert is_retryable(exc) is False


# ═══════════════════════════════════════════════════════════════
#  InFlightCoalescer
# ═══════════════════════════════════════════════════════════════
class TestInFlightCoalescer:
    def test_request_key_ignores_dict_order(self) -> None:
        a = request_key("post", "/quote", {"weight": 1, "destination": "Cali"})
        b = request_key("POST", "/quote", {"destination": "Cali", "weight": 1})
        assert a == b
        assert a != request_key("POST", "/quote", {"destination": "Cali", "weight": 2})

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_call(self) -> None:
        coalescer: InFlightCoalescer[int] = InFlightCoalescer()
        calls = 0

        async def work() -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return 42

        results = await asyncio.gather(*(coalescer.run("k", work) for _ in range(5)))
        assert results == [42] * 5
        assert calls == 1
        assert len(coalescer) == 0

    @pytest.mark.asyncio
    async def test_key_released_after_failure(self) -> None:
        coalescer: InFlightCoalescer[int] = InFlightCoalescer()
        calls = 0

        async def failing() -> int:
            nonlocal calls
            calls += 1
            raise RuntimeError("down")

        for _ in range(2):
            with pytest.raises(RuntimeError):
                await coalescer.run("k", failing)
        assert calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_call(self) -> None:
        coalescer: InFlightCoalescer[str] = InFlightCoalescer()

        async def work() -> str:
            await asyncio.sleep(0.05)
            return "done"

        first = asyncio.create_task(coalescer.run("k", work))
        second = asyncio.create_task(coalescer.run("k", work))
        await asyncio.sleep(0.01)
        first.cancel()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first


# ═══════════════════════════════════════════════════════════════
#  ResilientClient
# ═══════════════════════════════════════════════════════════════
class TestResilientClient:
    @pytest.mark.asyncio
    async def test_success_passes_through(self) -> None:
        client = ResilientClient("svc", retry_policy=FAST_RETRY)

        async def ok() -> str:
            return "ok"

        assert await client.call(ok) == "ok"
        assert client.breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_timeout(self) -> None:
        client = ResilientClient("svc", retry_policy=RetryPolicy.no_retry(), timeout_s=0.02)

        async def slow() -> str:
            await asyncio.sleep(1)
            return "late"

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await client.call(slow)
        assert exc_info.value.code == "PROVIDER_TIMEOUT"
        assert client.breaker.snapshot().consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self) -> None:
        client = ResilientClient("svc", retry_policy=FAST_RETRY)
        attempts = 0

        async def flaky() -> str:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise httpx.ConnectError("refused")
            return "ok"

        assert await client.call(flaky) == "ok"
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_does_not_retry_permanent_failures(self, fake_clock: FakeClock) -> None:
        breaker = _breaker(fake_clock, failure_threshold=1)
        client = ResilientClient("svc", breaker=breaker, retry_policy=FAST_RETRY)
        attempts = 0

        async def broken() -> str:
            nonlocal attempts
            attempts += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            await client.call(broken)
        assert attempts == 1
        assert breaker.state == CircuitState.CLOSED

    @pytest.mark.asyncio
    async def test_exhausted_retries_reraise_last_error(self) -> None:
        client = ResilientClient("svc", retry_policy=FAST_RETRY)
        attempts = 0

        async def down() -> str:
            nonlocal attempts
            attempts += 1
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await client.call(down)
        assert attempts == 3

    @pytest.mark.asyncio
    async def test_retries_stop_when_time_budget_is_spent(self) -> None:
        policy = RetryPolicy(max_attempts=5, backoff_base=0.0, backoff_max=0.0, jitter=0.0, max_elapsed=0.08)
        client = ResilientClient("svc", retry_policy=policy)
        attempts = 0

        async def slow_failure() -> str:
            nonlocal attempts
            attempts += 1
            await asyncio.sleep(0.05)
            raise httpx.ConnectError("refused")

        with pytest.raises(httpx.ConnectError):
            await client.call(slow_failure)
        assert attempts <= 2

    @pytest.mark.asyncio
    async def test_open_circuit_skips_call(self, fake_clock: FakeClock) -> None:
        breaker = _breaker(fake_clock, failure_threshold=1)
        breaker.record_failure()
        client = ResilientClient("svc", breaker=breaker, retry_policy=FAST_RETRY)
        attempts = 0

        async def never() -> str:
            nonlocal attempts
            attempts += 1
            return "ok"

        with pytest.raises(CircuitOpenError):
            await client.call(never)
        assert attempts == 0

    @pytest.mark.asyncio
    async def test_request_retries_server_errors(self) -> None:
        responses = iter([503, 200])
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(next(responses), json={"ok": True})

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ResilientClient("svc", retry_policy=FAST_RETRY, http=http)

        response = await client.request("POST", "https://carrier.test/quote", json={"weight": 2})
        assert response.status_code == 200
        assert len(seen) == 2
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_client_error_is_not_retried(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(404)

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = ResilientClient("svc", retry_policy=FAST_RETRY, http=http)

        with pytest.raises(httpx.HTTPStatusError):
            await client.request("GET", "https://carrier.test/quote")
        assert len(seen) == 1
        await client.aclose()

    @pytest.mark.asyncio
    async def test_request_without_http_client(self) -> None:
        client = ResilientClient("svc")
        with pytest.raises(RuntimeError):
            await client.request("GET", "https://carrier.test/quote")
