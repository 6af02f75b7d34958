"""Shared FastAPI dependencies for the service routers.

Long-lived collaborators are built once by the app factory and stored on
``app.state``; handlers receive them through these accessors.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable

from starlette.requests import Request

from classroom.core.errors import PersistenceError
from classroom.storage import Repository
from classroom.verification import CrossServiceVerifier

logger = logging.getLogger(__name__)


def get_repository(request: Request) -> Repository:
    return request.app.state.repository


def get_verifier(request: Request) -> CrossServiceVerifier:
    return request.app.state.verifier


def forwarded_authorization(request: Request) -> str | None:
    """The caller's ``Authorization`` value, unmodified."""
    return request.headers.get("Authorization")


async def persist(write: Awaitable[None], operation: str) -> None:
    """Await a repository write; log failures and raise ``PersistenceError``."""
    try:
        await write
    except Exception:
        logger.exception("%s: storage write failed", operation)
        raise PersistenceError("database error") from None
