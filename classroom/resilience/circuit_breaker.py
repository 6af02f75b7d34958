"""Async circuit breaker for outbound calls to remote targets.

State is derived from two counters rather than stored:

    CLOSED     failure_count <  threshold
    OPEN       failure_count >= threshold, last failure within recovery_timeout
    HALF_OPEN  failure_count >= threshold, recovery_timeout elapsed

In HALF_OPEN a single probe is admitted.  A successful probe zeroes the
counters (CLOSED); a failed probe stamps a fresh failure time, which puts
the breaker back into OPEN for another recovery window.

Each remote target gets its own ``CircuitBreaker`` via
``CircuitBreakerRegistry`` so a failing target never affects another.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from enum import Enum

from classroom.core.errors import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Async-safe circuit breaker for a single remote target.

    Args:
        name:               Target key (for logging/errors).
        failure_threshold:  Consecutive failures before opening the circuit.
        recovery_timeout:   Seconds the circuit stays OPEN before probing.
        clock:              Monotonic time source, replaceable in tests.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if recovery_timeout < 0:
            raise ValueError("recovery_timeout must be >= 0")
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._clock = clock

        self._failure_count = 0
        self._last_failure_time: float | None = None
        self._probe_in_flight = False
        self._lock = asyncio.Lock()

        # Metrics
        self.total_calls = 0
        self.total_failures = 0
        self.total_rejections = 0
        self.total_successes = 0

    # ── Public properties ────────────────────────────────────────────

    @property
    def state(self) -> CircuitState:
        """Return the state implied by the failure counters."""
        if self._failure_count < self.failure_threshold:
            return CircuitState.CLOSED
        if self._last_failure_time is None:
            return CircuitState.OPEN
        if self._clock() - self._last_failure_time >= self.recovery_timeout:
            return CircuitState.HALF_OPEN
        return CircuitState.OPEN

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def is_open(self) -> bool:
        """True when a call made now would be rejected."""
        current = self.state
        if current == CircuitState.OPEN:
            return True
        return current == CircuitState.HALF_OPEN and self._probe_in_flight

    def retry_after(self) -> float:
        """Seconds until the next probe may be admitted."""
        if self._last_failure_time is None:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self._last_failure_time))

    # ── Call gating ──────────────────────────────────────────────────

    async def pre_check(self) -> bool:
        """Admit or reject a call; raise ``CircuitOpenError`` if rejected.

        Must be called **before** any network I/O.  Returns ``True`` when
        the admitted call is the half-open probe.
        """
        async with self._lock:
            current = self.state

            if current == CircuitState.OPEN:
                self.total_rejections += 1
                raise CircuitOpenError(self.name, self.retry_after())

            is_probe = False
            if current == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    self.total_rejections += 1
                    raise CircuitOpenError(self.name, 0.0)
                self._probe_in_flight = True
                is_probe = True
                logger.info("Circuit for %s half-open, admitting probe", self.name)

            self.total_calls += 1
            return is_probe

    async def record_success(self) -> None:
        """Zero the failure count and clear the failure time (CLOSED)."""
        async with self._lock:
            self.total_successes += 1
            if self._failure_count >= self.failure_threshold:
                logger.info("Circuit for %s closed", self.name)
            self._failure_count = 0
            self._last_failure_time = None
            self._probe_in_flight = False

    async def record_failure(self) -> None:
        """Count a failure and stamp the current time."""
        async with self._lock:
            self._failure_count += 1
            self.total_failures += 1
            self._last_failure_time = self._clock()
            self._probe_in_flight = False
            if self._failure_count == self.failure_threshold:
                logger.warning(
                    "Circuit for %s opened after %d consecutive failures",
                    self.name,
                    self._failure_count,
                )
            elif self._failure_count > self.failure_threshold:
                logger.warning("Circuit for %s re-opened after failed probe", self.name)

    def release_probe(self) -> None:
        """Free the half-open probe slot without recording an outcome.

        Used when the probing call is cancelled before it completes, so
        the breaker can admit another probe.
        """
        self._probe_in_flight = False

    async def reset(self) -> None:
        """Force-reset the circuit breaker to CLOSED state."""
        async with self._lock:
            self._failure_count = 0
            self._last_failure_time = None
            self._probe_in_flight = False

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot for the health endpoint."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self._failure_count,
            "total_calls": self.total_calls,
            "total_failures": self.total_failures,
            "total_rejections": self.total_rejections,
            "total_successes": self.total_successes,
        }


class CircuitBreakerRegistry:
    """Owns one long-lived ``CircuitBreaker`` per remote target.

    Usage::

        registry = CircuitBreakerRegistry(["admin", "teacher"], failure_threshold=5)
        cb = registry.get("admin")
        await cb.pre_check()
        # ... outbound call ...
        await cb.record_success()
    """

    def __init__(
        self,
        targets: Iterable[str] = (),
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold = failure_threshold
        self._recovery = recovery_timeout
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}
        for target in targets:
            self.get(target)

    def get(self, target: str) -> CircuitBreaker:
        """Return (or create) the circuit breaker for *target*."""
        if target not in self._breakers:
            self._breakers[target] = CircuitBreaker(
                name=target,
                failure_threshold=self._threshold,
                recovery_timeout=self._recovery,
                clock=self._clock,
            )
        return self._breakers[target]

    def all_snapshots(self) -> list[dict]:
        """Return snapshots for every registered breaker."""
        return [cb.snapshot() for cb in self._breakers.values()]

    async def reset_all(self) -> None:
        """Reset every circuit breaker to CLOSED."""
        for cb in self._breakers.values():
            await cb.reset()
