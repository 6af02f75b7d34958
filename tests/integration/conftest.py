"""Integration test configuration.

Shared fixtures for tests that drive the three running services over HTTP.
All integration tests are marked with ``@pytest.mark.integration``.
Run them with: ``INTEGRATION=1 pytest tests/integration/ -m integration``
"""

import os

import httpx
import pytest

from classroom.security.authn import Role, issue_token

# ── Auto-skip when INTEGRATION env not set ──────────────────────────────────


def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests when INTEGRATION env var is not set."""
    if os.environ.get("INTEGRATION", "").lower() in ("1", "true", "yes"):
        return
    skip_marker = pytest.mark.skip(reason="Set INTEGRATION=1 to run integration tests with live services")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


# ── Session-scoped fixtures ─────────────────────────────────────────────────


@pytest.fixture(scope="session")
def service_urls() -> dict[str, str]:
    """Base URL of each running service."""
    return {
        "admin": os.environ.get("ADMIN_URL", "http://localhost:8080"),
        "teacher": os.environ.get("TEACHER_URL", "http://localhost:8081"),
        "student": os.environ.get("STUDENT_URL", "http://localhost:8082"),
    }


@pytest.fixture(scope="session")
def jwt_secret() -> str:
    """Shared HS256 secret the services were started with."""
    return os.environ.get("CLASSROOM_JWT_SECRET", "change-me")


@pytest.fixture(scope="session")
def tokens(jwt_secret) -> dict[Role, str]:
    """One bearer header per role."""
    return {
        role: f"Bearer {issue_token(f'it-{role.value}', role, jwt_secret, ttl_seconds=3600)}"
        for role in Role
    }


@pytest.fixture
async def http():
    async with httpx.AsyncClient(timeout=10.0) as client:
        yield client
