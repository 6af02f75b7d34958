"""Settings — service configuration.

Centralized configuration for every classroom service process.
All settings are loaded from environment variables with the CLASSROOM_ prefix.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Service names a process may run as; "all" mounts every router in one process.
SERVICE_NAMES: frozenset[str] = frozenset({"admin", "teacher", "student", "all"})


class Settings(BaseSettings):
    """Classroom service configuration.

    All fields can be overridden by environment variables prefixed with
    ``CLASSROOM_``.  For example, ``CLASSROOM_PORT=9999`` overrides the
    default port.
    """

    # ── Service identity ────────────────────────────────────────────
    SERVICE_NAME: str = "all"
    SERVICE_VERSION: str = "0.1.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    LOG_LEVEL: str = "INFO"

    # ── Authentication ──────────────────────────────────────────────
    JWT_SECRET: str = "change-me"
    JWT_ISSUER: str = ""  # Empty: issuer claim not checked
    AUTH_ENABLED: bool = True

    # ── Remote targets ──────────────────────────────────────────────
    ADMIN_SERVICE_URL: str = "http://admin-service:8080"
    TEACHER_SERVICE_URL: str = "http://teacher-service:8080"

    # ── Resilience ──────────────────────────────────────────────────
    CIRCUIT_BREAKER_THRESHOLD: int = 5  # Consecutive failures before OPEN
    CIRCUIT_BREAKER_RECOVERY_SECONDS: float = 30.0  # Seconds before HALF_OPEN probe
    OUTBOUND_MAX_RETRIES: int = 3  # Retries after the first attempt
    OUTBOUND_RETRY_BASE_DELAY: float = 0.1  # Seconds, doubled per retry
    OUTBOUND_CONNECT_TIMEOUT: float = 5.0
    OUTBOUND_TIMEOUT: float = 30.0
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    model_config = {
        "env_prefix": "CLASSROOM_",
    }

    @field_validator("SERVICE_NAME")
    @classmethod
    def _known_service(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in SERVICE_NAMES:
            raise ValueError(f"SERVICE_NAME must be one of {sorted(SERVICE_NAMES)}")
        return normalized

    @field_validator("CIRCUIT_BREAKER_THRESHOLD")
    @classmethod
    def _positive_threshold(cls, value: int) -> int:
        if value < 1:
            raise ValueError("CIRCUIT_BREAKER_THRESHOLD must be >= 1")
        return value

    @field_validator("OUTBOUND_MAX_RETRIES")
    @classmethod
    def _non_negative_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("OUTBOUND_MAX_RETRIES must be >= 0")
        return value

    @field_validator(
        "CIRCUIT_BREAKER_RECOVERY_SECONDS",
        "OUTBOUND_CONNECT_TIMEOUT",
        "OUTBOUND_TIMEOUT",
        "REQUEST_TIMEOUT_SECONDS",
    )
    @classmethod
    def _positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts and recovery window must be > 0")
        return value

    def target_urls(self) -> dict[str, str]:
        """Map each remote target key to its base URL (no trailing slash)."""
        return {
            "admin": self.ADMIN_SERVICE_URL.rstrip("/"),
            "teacher": self.TEACHER_SERVICE_URL.rstrip("/"),
        }
