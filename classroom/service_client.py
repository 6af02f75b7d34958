"""ServiceClient — outbound existence probes with retry and circuit breaking.

Each remote target (``"admin"``, ``"teacher"``) maps to a ``ServiceTarget``
holding its base URL.  ``ServiceClient.get()`` sends a GET with the
caller's ``Authorization`` header forwarded verbatim, gated by the
target's circuit breaker and retried with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from classroom.core.config import Settings
from classroom.core.errors import RemoteStatusError, UnavailableError
from classroom.resilience.circuit_breaker import CircuitBreakerRegistry

logger = logging.getLogger(__name__)

# ── Data classes ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ServiceTarget:
    """A named remote service.

    Attributes:
        name:     Stable target key (e.g. ``admin``).
        base_url: Service origin without trailing slash.
    """

    name: str
    base_url: str


@dataclass
class ProbeResult:
    """Successful (2xx) response from a remote target.

    Attributes:
        status_code: HTTP status code from the target.
        attempts:    Number of attempts it took.
        elapsed_ms:  Round-trip time of the successful attempt.
    """

    status_code: int
    attempts: int
    elapsed_ms: float


# ── Client ──────────────────────────────────────────────────────────────


class ServiceClient:
    """Calls other classroom services with retry and per-target circuit breakers.

    Uses a single ``httpx.AsyncClient`` per target for connection pooling.
    A call makes at most ``1 + max_retries`` attempts; the delay before
    attempt *n* (n >= 1) is ``retry_base_delay * 2 ** (n - 1)``.  The
    breaker hears about the call once, after the final attempt.

    Args:
        targets:          Target key → base URL.
        breakers:         Registry holding one breaker per target.
        max_retries:      Retries after the first attempt.
        retry_base_delay: Delay in seconds before the first retry.
        connect_timeout:  Seconds allowed to establish a connection.
        timeout:          Seconds allowed for one whole attempt.
        sleep:            Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        targets: dict[str, str],
        breakers: CircuitBreakerRegistry,
        *,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
        connect_timeout: float = 5.0,
        timeout: float = 30.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.targets: dict[str, ServiceTarget] = {
            name: ServiceTarget(name=name, base_url=url.rstrip("/")) for name, url in targets.items()
        }
        self._breakers = breakers
        for name in self.targets:
            breakers.get(name)
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._timeout = httpx.Timeout(timeout, connect=connect_timeout)
        # httpx limits each phase; this bounds the whole attempt, body included
        self._attempt_timeout = timeout
        self._sleep = sleep
        # Connection pool: one AsyncClient per target
        self._clients: dict[str, httpx.AsyncClient] = {}
        # Shared client override; tests inject a mock transport here
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings, breakers: CircuitBreakerRegistry) -> ServiceClient:
        return cls(
            settings.target_urls(),
            breakers,
            max_retries=settings.OUTBOUND_MAX_RETRIES,
            retry_base_delay=settings.OUTBOUND_RETRY_BASE_DELAY,
            connect_timeout=settings.OUTBOUND_CONNECT_TIMEOUT,
            timeout=settings.OUTBOUND_TIMEOUT,
        )

    @property
    def circuit_breakers(self) -> CircuitBreakerRegistry:
        """Expose the breaker registry for the health endpoint."""
        return self._breakers

    @property
    def attempts(self) -> int:
        return 1 + self._max_retries

    def backoff_delay(self, attempt: int) -> float:
        """Delay before zero-based *attempt*; the first attempt has none."""
        if attempt < 1:
            return 0.0
        return self._retry_base_delay * (2 ** (attempt - 1))

    def _get_client(self, target: ServiceTarget) -> httpx.AsyncClient:
        """Return the pooled ``AsyncClient`` for *target*."""
        if self._client is not None:
            return self._client
        if target.name not in self._clients:
            self._clients[target.name] = httpx.AsyncClient(timeout=self._timeout)
        return self._clients[target.name]

    def _get_target(self, name: str) -> ServiceTarget:
        target = self.targets.get(name)
        if target is None:
            raise ValueError(f"Unknown target: {name}")
        return target

    async def get(
        self,
        target_name: str,
        path: str,
        authorization: str | None = None,
        *,
        deadline: float | None = None,
    ) -> ProbeResult:
        """GET *path* on *target_name*, retrying failures.

        When *deadline* is given, attempts and backoff sleeps are fitted
        inside it.  Running out of deadline ends the call like running out
        of attempts, so the breaker counts it as a failure.

        Args:
            target_name:   Registered target key.
            path:          Absolute path on the target (``/api/...``).
            authorization: Caller's ``Authorization`` value, forwarded unchanged.
            deadline:      Seconds the whole call may take, retries included.

        Returns:
            A ``ProbeResult`` for the first 2xx response.

        Raises:
            ValueError: If *target_name* is not registered.
            CircuitOpenError: If the target's breaker rejects the call.
            RemoteStatusError: If the last attempt got a non-2xx response.
            UnavailableError: If the last attempt ended in a transport error.
        """
        target = self._get_target(target_name)
        cb = self._breakers.get(target.name)
        is_probe = await cb.pre_check()

        url = f"{target.base_url}{path}"
        headers = {"Authorization": authorization} if authorization else {}
        client = self._get_client(target)

        ends_at = time.monotonic() + deadline if deadline is not None else None
        outcome_recorded = False
        try:
            last_exc: Exception | None = None
            for attempt in range(self.attempts):
                if attempt > 0:
                    delay = self.backoff_delay(attempt)
                    if ends_at is not None and time.monotonic() + delay >= ends_at:
                        logger.warning(
                            "Call to %s failed: %s (attempt %d/%d), no time left before the deadline",
                            target.name,
                            last_exc,
                            attempt,
                            self.attempts,
                        )
                        break
                    logger.warning(
                        "Call to %s failed: %s (attempt %d/%d), retrying in %.1fs",
                        target.name,
                        last_exc,
                        attempt,
                        self.attempts,
                        delay,
                    )
                    await self._sleep(delay)

                budget = self._attempt_timeout
                if ends_at is not None:
                    budget = min(budget, ends_at - time.monotonic())
                start = time.monotonic()
                try:
                    async with asyncio.timeout(budget):
                        response = await client.get(url, headers=headers)
                except (httpx.TimeoutException, TimeoutError):
                    last_exc = UnavailableError(target.name, "timed out")
                    continue
                except httpx.TransportError as exc:
                    last_exc = UnavailableError(target.name, type(exc).__name__)
                    continue

                if response.is_success:
                    await cb.record_success()
                    outcome_recorded = True
                    return ProbeResult(
                        status_code=response.status_code,
                        attempts=attempt + 1,
                        elapsed_ms=round((time.monotonic() - start) * 1000, 2),
                    )
                last_exc = RemoteStatusError(target.name, response.status_code)

            if last_exc is None:
                last_exc = UnavailableError(target.name, "all retry attempts exhausted")
            await self._record_exhausted(cb, last_exc)
            outcome_recorded = True
            raise last_exc
        finally:
            if is_probe and not outcome_recorded:
                cb.release_probe()

    async def _record_exhausted(self, cb, last_exc: Exception) -> None:
        """Report an exhausted call to the breaker.

        A remote that keeps answering 4xx is reachable and healthy, so it
        closes the breaker; transport failures and 5xx count as failures.
        """
        if isinstance(last_exc, RemoteStatusError) and last_exc.status < 500:
            await cb.record_success()
        else:
            await cb.record_failure()

    async def close(self) -> None:
        """Close all pooled httpx clients."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
