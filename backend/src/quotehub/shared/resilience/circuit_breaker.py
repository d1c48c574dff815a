"""Circuit breaker — isolates a failing remote dependency.

State machine:
    CLOSED    → (failure_threshold consecutive failures) → OPEN
    OPEN      → (recovery_timeout elapsed)               → HALF_OPEN
    HALF_OPEN → (success_threshold consecutive successes) → CLOSED
    HALF_OPEN → (any failure)                             → OPEN

Every read-modify-write happens under one lock, so each transition is
decided exactly once even with many concurrent callers.

``acquire`` hands out a ``CircuitPermit`` stamped with the current
generation, which advances on every transition.  Outcomes reported with a
permit from an older generation are dropped: a call admitted while CLOSED
that finishes after the circuit opened cannot trip, close or free a
half-open trial slot.
"""

from __future__ import annotations

import enum
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from quotehub.domain.exceptions import CircuitOpenError
from quotehub.shared.observability.metrics import CIRCUIT_TRANSITIONS

logger = structlog.get_logger(__name__)


class CircuitState(str, enum.Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True, slots=True)
class CircuitPermit:
    """Admission ticket returned by ``CircuitBreaker.acquire``."""

    generation: int
    trial: bool = False


@dataclass(frozen=True, slots=True)
class CircuitSnapshot:
    name: str
    state: CircuitState
    consecutive_failures: int
    consecutive_successes: int
    last_failure_time: float | None
    half_open_in_flight: int


class CircuitBreaker:
    """Per-dependency circuit breaker with bounded half-open trials."""

    def __init__(
        self,
        name: str,
        *,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 2,
        half_open_max_calls: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1 or success_threshold < 1 or half_open_max_calls < 1:
            raise ValueError("circuit breaker thresholds must be >= 1")
        self._name = name
        self._failure_threshold = failure_threshold
        self._recovery_timeout = recovery_timeout
        self._success_threshold = success_threshold
        self._half_open_max_calls = half_open_max_calls
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._consecutive_successes = 0
        self._last_failure_time: float | None = None
        self._half_open_in_flight = 0
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._maybe_transition_to_half_open()
            return self._state

    def acquire(self) -> CircuitPermit:
        """Reserve permission for one call or raise ``CircuitOpenError``."""
        with self._lock:
            self._maybe_transition_to_half_open()

            if self._state == CircuitState.CLOSED:
                return CircuitPermit(self._generation)

            if self._state == CircuitState.HALF_OPEN:
                if self._half_open_in_flight < self._half_open_max_calls:
                    self._half_open_in_flight += 1
                    return CircuitPermit(self._generation, trial=True)
                retry_after = 0.0
            else:
                retry_after = self._remaining_cooldown()

        raise CircuitOpenError(self._name, retry_after)

    def record_success(self, permit: CircuitPermit | None = None) -> None:
        with self._lock:
            if self._is_stale(permit):
                return
            if self._state == CircuitState.HALF_OPEN:
                # Only a trial's success says the dependency recovered.
                if permit is None or not permit.trial:
                    return
                self._release_trial()
                self._consecutive_successes += 1
                if self._consecutive_successes >= self._success_threshold:
                    self._consecutive_failures = 0
                    self._consecutive_successes = 0
                    self._transition(CircuitState.CLOSED)
            elif self._state == CircuitState.CLOSED:
                self._consecutive_failures = 0

    def record_failure(self, permit: CircuitPermit | None = None) -> None:
        with self._lock:
            if self._is_stale(permit):
                return
            self._consecutive_failures += 1

            if self._state == CircuitState.HALF_OPEN:
                self._consecutive_successes = 0
                self._last_failure_time = self._clock()
                self._transition(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._consecutive_failures >= self._failure_threshold
            ):
                self._last_failure_time = self._clock()
                self._transition(CircuitState.OPEN)

    def release(self, permit: CircuitPermit | None = None) -> None:
        """Settle a call whose outcome says nothing about dependency health."""
        with self._lock:
            if permit is None or not permit.trial or self._is_stale(permit):
                return
            if self._state == CircuitState.HALF_OPEN:
                self._release_trial()

    def reset(self) -> None:
        """Force the circuit CLOSED (admin override)."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._consecutive_successes = 0
            self._half_open_in_flight = 0
            self._generation += 1
            logger.info("circuit_breaker_force_reset", dependency=self._name)

    def snapshot(self) -> CircuitSnapshot:
        with self._lock:
            self._maybe_transition_to_half_open()
            return CircuitSnapshot(
                name=self._name,
                state=self._state,
                consecutive_failures=self._consecutive_failures,
                consecutive_successes=self._consecutive_successes,
                last_failure_time=self._last_failure_time,
                half_open_in_flight=self._half_open_in_flight,
            )

    # ── Internals (caller holds the lock) ────────────────────
    def _maybe_transition_to_half_open(self) -> None:
        if self._state == CircuitState.OPEN and self._remaining_cooldown() <= 0:
            self._consecutive_successes = 0
            self._transition(CircuitState.HALF_OPEN)

    def _remaining_cooldown(self) -> float:
        if self._last_failure_time is None:
            return 0.0
        elapsed = self._clock() - self._last_failure_time
        return max(0.0, self._recovery_timeout - elapsed)

    def _is_stale(self, permit: CircuitPermit | None) -> bool:
        self._maybe_transition_to_half_open()
        return permit is not None and permit.generation != self._generation

    def _release_trial(self) -> None:
        self._half_open_in_flight = max(0, self._half_open_in_flight - 1)

    def _transition(self, target: CircuitState) -> None:
        previous = self._state
        self._state = target
        self._generation += 1
        self._half_open_in_flight = 0
        CIRCUIT_TRANSITIONS.labels(dependency=self._name, state=target.value).inc()
        log = logger.warning if target == CircuitState.OPEN else logger.info
        log(
            f"circuit_breaker_{target.value}",
            dependency=self._name,
            previous_state=previous.value,
            failures=self._consecutive_failures,
        )
