"""Bearer token authentication.

``authenticate()`` is a pure function: Authorization header in,
``Credential`` out, ``UnauthenticatedError`` on any failure.  Tokens are
HS256 JWTs signed with the shared ``JWT_SECRET`` and carry ``sub``,
``role``, ``exp`` and an optional ``iss``.

``BearerAuthMiddleware`` runs it ahead of every handler (except the
public probes), stores the credential in ``request.state.auth`` and
short-circuits with a structured 401 on failure.
"""

from __future__ import annotations

import enum
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any

from jose import JWTError
from jose import jwt as jose_jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from classroom.core.config import Settings
from classroom.core.errors import StructuredErrorResponse, UnauthenticatedError

logger = logging.getLogger(__name__)

# ── Constants ───────────────────────────────────────────────────────────

_ALGORITHM = "HS256"

_BEARER_PREFIX = "Bearer "

# Paths that never require authentication
_PUBLIC_PATHS: set[str] = {"/health", "/health/", "/ready", "/ready/"}


# ── Auth metrics ────────────────────────────────────────────────────────


@dataclass
class AuthMetrics:
    """Simple counters for auth events."""

    tokens_validated: int = 0
    tokens_rejected: int = 0

    def record_validation(self) -> None:
        self.tokens_validated += 1

    def record_rejection(self) -> None:
        self.tokens_rejected += 1

    def reset(self) -> None:
        """Reset all counters (useful for testing)."""
        self.tokens_validated = 0
        self.tokens_rejected = 0


auth_metrics = AuthMetrics()


# ── Data types ──────────────────────────────────────────────────────────


class Role(str, enum.Enum):
    """The closed set of caller roles."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


@dataclass(frozen=True)
class Credential:
    """Validated identity extracted from a bearer token.

    Lives for one request in ``request.state.auth``.
    """

    subject: str
    role: Role
    expires_at: int
    issuer: str | None = None


# ── Token validation ────────────────────────────────────────────────────


def extract_bearer(authorization: str | None) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` value."""
    if authorization is None:
        raise UnauthenticatedError("Missing Authorization header")
    if not authorization.startswith(_BEARER_PREFIX):
        raise UnauthenticatedError("Invalid Authorization format")
    token = authorization[len(_BEARER_PREFIX) :].strip()
    if not token:
        raise UnauthenticatedError("Empty bearer token")
    return token


def authenticate(
    authorization: str | None,
    secret: str,
    *,
    issuer: str | None = None,
) -> Credential:
    """Verify the bearer token in *authorization* and return its credential.

    Raises:
        UnauthenticatedError: Header absent or not ``Bearer``, bad signature,
            expired or missing ``exp``, issuer mismatch, unknown role or
            missing subject.
    """
    token = extract_bearer(authorization)
    try:
        claims = jose_jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            issuer=issuer or None,
            options={
                "require_exp": True,
                "verify_exp": True,
                "verify_aud": False,
            },
        )
    except JWTError as exc:
        raise UnauthenticatedError("Invalid or expired token") from exc

    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise UnauthenticatedError("Token has no subject")
    try:
        role = Role(claims.get("role"))
    except ValueError:
        raise UnauthenticatedError("Token has an unknown role") from None
    iss = claims.get("iss")

    return Credential(
        subject=subject,
        role=role,
        expires_at=int(claims["exp"]),
        issuer=iss if isinstance(iss, str) else None,
    )


def issue_token(
    subject: str,
    role: Role | str,
    secret: str,
    *,
    ttl_seconds: int = 86400,
    issuer: str | None = None,
) -> str:
    """Mint a signed token for local runs and tests."""
    claims: dict[str, Any] = {
        "sub": subject,
        "role": Role(role).value,
        "exp": int(time.time()) + ttl_seconds,
    }
    if issuer:
        claims["iss"] = issuer
    return jose_jwt.encode(claims, secret, algorithm=_ALGORITHM)


# ── Middleware ───────────────────────────────────────────────────────────


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that authenticates every non-public request.

    - ``/health`` and ``/ready`` bypass validation entirely.
    - When ``AUTH_ENABLED=false`` requests pass without a credential, so
      role-protected endpoints answer 401.
    """

    def __init__(self, app: Any, settings: Settings) -> None:
        super().__init__(app)
        self.settings = settings

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in _PUBLIC_PATHS or not self.settings.AUTH_ENABLED:
            return await call_next(request)

        try:
            credential = authenticate(
                request.headers.get("Authorization"),
                self.settings.JWT_SECRET,
                issuer=self.settings.JWT_ISSUER or None,
            )
        except UnauthenticatedError as exc:
            auth_metrics.record_rejection()
            logger.info("Rejected request to %s: %s", request.url.path, exc)
            return _unauthorized(exc, request)

        auth_metrics.record_validation()
        request.state.auth = credential
        return await call_next(request)


def _unauthorized(exc: UnauthenticatedError, request: Request) -> JSONResponse:
    """Return a structured 401 with no internal details leaked."""
    request_id = getattr(request.state, "request_id", None) or str(uuid.uuid4())
    body = StructuredErrorResponse.from_exception(exc, request_id)
    return JSONResponse(status_code=401, content=body.model_dump())
