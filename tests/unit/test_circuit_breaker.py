"""Tests for the per-target circuit breaker.

Covers:
- State derived from failure count and last failure time
- OPEN rejects without admitting calls until the recovery window passes
- HALF_OPEN admits exactly one probe; success closes, failure re-opens
- CircuitBreakerRegistry per-target isolation and snapshots
"""

from __future__ import annotations

import asyncio

import pytest

from classroom.core.errors import CircuitOpenError, UnavailableError
from classroom.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)


@pytest.fixture
def cb(clock):
    return CircuitBreaker("admin", failure_threshold=5, recovery_timeout=30.0, clock=clock)


async def _fail(cb: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        await cb.record_failure()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CircuitBreaker State Machine Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestCircuitBreakerStates:
    """Closed → Open → Half-open → Closed/Open transitions."""

    async def test_initial_state_is_closed(self, cb):
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.retry_after() == 0.0

    @pytest.mark.parametrize("failures", [0, 1, 2, 3, 4])
    async def test_closed_below_threshold_lets_calls_through(self, cb, failures):
        await _fail(cb, failures)
        assert cb.state == CircuitState.CLOSED
        assert cb.is_open() is False
        assert await cb.pre_check() is False

    async def test_opens_at_exactly_threshold(self, cb):
        await _fail(cb, 4)
        assert cb.state == CircuitState.CLOSED
        await cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert cb.failure_count == 5

    async def test_open_rejects_calls(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(29.9)
        with pytest.raises(CircuitOpenError, match="admin"):
            await cb.pre_check()
        assert cb.total_rejections == 1
        assert cb.total_calls == 0

    async def test_circuit_open_is_an_unavailable_error(self, cb):
        await _fail(cb, 5)
        with pytest.raises(UnavailableError) as exc_info:
            await cb.pre_check()
        assert exc_info.value.retry_after == pytest.approx(30.0)

    async def test_half_open_after_recovery_timeout(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(30.0)
        assert cb.state == CircuitState.HALF_OPEN
        assert cb.is_open() is False

    async def test_half_open_admits_exactly_one_probe(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(30.0)
        assert await cb.pre_check() is True
        assert cb.is_open() is True
        with pytest.raises(CircuitOpenError):
            await cb.pre_check()

    async def test_probe_success_closes(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(31.0)
        await cb.pre_check()
        await cb.record_success()
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0
        assert cb.retry_after() == 0.0

    async def test_probe_failure_reopens_with_fresh_timestamp(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(31.0)
        await cb.pre_check()
        await cb.record_failure()
        assert cb.state == CircuitState.OPEN
        assert cb.retry_after() == pytest.approx(30.0)
        assert cb.failure_count == 6
        clock.advance(29.0)
        with pytest.raises(CircuitOpenError):
            await cb.pre_check()
        clock.advance(1.0)
        assert cb.state == CircuitState.HALF_OPEN

    async def test_released_probe_allows_next_probe(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(30.0)
        await cb.pre_check()
        cb.release_probe()
        assert await cb.pre_check() is True

    async def test_success_resets_failure_count(self, cb):
        await _fail(cb, 3)
        await cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == CircuitState.CLOSED

    async def test_failure_count_only_grows_without_success(self, cb, clock):
        counts = []
        for _ in range(8):
            await cb.record_failure()
            clock.advance(40.0)
            counts.append(cb.failure_count)
        assert counts == sorted(counts)
        assert counts[-1] == 8

    async def test_force_reset(self, cb):
        await _fail(cb, 5)
        await cb.reset()
        assert cb.state == CircuitState.CLOSED
        assert cb.failure_count == 0

    def test_rejects_invalid_threshold(self):
        with pytest.raises(ValueError):
            CircuitBreaker("x", failure_threshold=0)


class TestCircuitBreakerConcurrency:
    """Concurrent callers through a half-open breaker."""

    async def test_concurrent_pre_checks_admit_single_probe(self, cb, clock):
        await _fail(cb, 5)
        clock.advance(30.0)
        results = await asyncio.gather(*(cb.pre_check() for _ in range(20)), return_exceptions=True)
        admitted = [r for r in results if r is True]
        rejected = [r for r in results if isinstance(r, CircuitOpenError)]
        assert len(admitted) == 1
        assert len(rejected) == 19

    async def test_concurrent_failures_are_all_counted(self, cb):
        await asyncio.gather(*(cb.record_failure() for _ in range(50)))
        assert cb.failure_count == 50
        assert cb.state == CircuitState.OPEN


class TestCircuitBreakerMetrics:
    """Snapshot reporting."""

    async def test_snapshot_structure(self, cb):
        snap = cb.snapshot()
        assert snap["name"] == "admin"
        assert snap["state"] == "closed"
        assert snap["failure_count"] == 0
        assert snap["total_calls"] == 0

    async def test_metrics_track_correctly(self, cb):
        await cb.pre_check()
        await cb.record_success()
        await cb.pre_check()
        await cb.record_failure()
        assert cb.total_calls == 2
        assert cb.total_successes == 1
        assert cb.total_failures == 1


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CircuitBreakerRegistry Tests
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestCircuitBreakerRegistry:
    """One independent breaker per target."""

    async def test_targets_registered_at_construction(self):
        registry = CircuitBreakerRegistry(["admin", "teacher"])
        assert {s["name"] for s in registry.all_snapshots()} == {"admin", "teacher"}

    async def test_get_returns_same_instance(self):
        registry = CircuitBreakerRegistry()
        assert registry.get("admin") is registry.get("admin")

    async def test_targets_are_isolated(self, clock):
        registry = CircuitBreakerRegistry(["admin", "teacher"], failure_threshold=2, clock=clock)
        await registry.get("admin").record_failure()
        await registry.get("admin").record_failure()
        assert registry.get("admin").state == CircuitState.OPEN
        assert registry.get("teacher").state == CircuitState.CLOSED
        assert registry.get("teacher").failure_count == 0

    async def test_registry_passes_configuration(self):
        registry = CircuitBreakerRegistry(failure_threshold=7, recovery_timeout=12.0)
        cb = registry.get("admin")
        assert cb.failure_threshold == 7
        assert cb.recovery_timeout == 12.0

    async def test_reset_all(self):
        registry = CircuitBreakerRegistry(["admin", "teacher"], failure_threshold=1)
        await registry.get("admin").record_failure()
        await registry.get("teacher").record_failure()
        await registry.reset_all()
        assert all(s["state"] == "closed" for s in registry.all_snapshots())
