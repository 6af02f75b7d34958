"""Role-based access policy."""

from __future__ import annotations

from collections.abc import Callable

from starlette.requests import Request

from classroom.core.errors import ForbiddenError, UnauthenticatedError
from classroom.security.authn import Credential, Role


class AccessPolicy:
    """Allows a credential whose role is any member of *roles*.

    Read endpoints may list a second role so another service can forward
    its caller's token for an existence check.
    """

    def __init__(self, *roles: Role) -> None:
        if not roles:
            raise ValueError("AccessPolicy needs at least one role")
        self.roles: frozenset[Role] = frozenset(roles)

    def allows(self, credential: Credential) -> bool:
        return credential.role in self.roles

    def authorize(self, credential: Credential) -> Credential:
        """Return *credential* if allowed, else raise ``ForbiddenError``."""
        if not self.allows(credential):
            names = " or ".join(sorted(role.value for role in self.roles))
            raise ForbiddenError(f"{names} role required")
        return credential


def require_roles(*roles: Role) -> Callable[[Request], Credential]:
    """FastAPI dependency authorizing the request's credential.

    Usage::

        @router.post("/courses")
        async def create(credential: Credential = Depends(require_roles(Role.ADMIN))): ...
    """
    policy = AccessPolicy(*roles)

    def _dependency(request: Request) -> Credential:
        credential = getattr(request.state, "auth", None)
        if credential is None:
            raise UnauthenticatedError("Missing Authorization header")
        return policy.authorize(credential)

    _dependency.policy = policy  # type: ignore[attr-defined]
    return _dependency
