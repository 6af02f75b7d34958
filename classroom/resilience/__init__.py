"""Resilience patterns — circuit breaker for outbound service calls.

Provides per-target circuit breakers that turn a storm of remote
failures into fast local rejections.
"""

from classroom.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    "CircuitState",
]
