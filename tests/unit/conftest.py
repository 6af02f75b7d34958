"""Shared fixtures for unit tests: tokens, fake clock, scripted remote targets."""

import asyncio

import httpx
import pytest

from classroom.security.authn import Role, issue_token

SECRET = "unit-test-secret"

TARGETS = {"admin": "http://admin-service:8080", "teacher": "http://teacher-service:8080"}


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class RemoteTargets:
    """MockTransport handler answering per target host with a fixed status or error.

    The behavior ``HANG`` accepts the request and never answers.
    """

    HANG = "hang"

    def __init__(self) -> None:
        self.behavior: dict[str, object] = {"admin-service": 200, "teacher-service": 200}
        self.requests: list[httpx.Request] = []

    def set(self, target: str, behavior) -> None:
        self.behavior[f"{target}-service"] = behavior

    def count(self, target: str) -> int:
        return sum(1 for r in self.requests if r.url.host == f"{target}-service")

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        behavior = self.behavior[request.url.host]
        if behavior == self.HANG:
            await asyncio.sleep(3600)
        if isinstance(behavior, Exception):
            raise behavior
        return httpx.Response(behavior, json={"id": request.url.path.rsplit("/", 1)[-1]})


@pytest.fixture
def secret() -> str:
    return SECRET


@pytest.fixture
def auth_header():
    """Build an Authorization header for a freshly minted token."""

    def _build(role: Role, subject: str = "user-1") -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(subject, role, SECRET, ttl_seconds=600)}"}

    return _build


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def remote():
    return RemoteTargets()
