"""Structured error responses.

Custom exception hierarchy for the classroom services.  Every
``ClassroomError`` carries the HTTP status and machine-readable code it
is rendered with; ``StructuredErrorResponse`` is the wire shape.
"""

from pydantic import BaseModel


class ClassroomError(Exception):
    """Base exception for all classroom service errors."""

    status_code: int = 500
    code: str = "SERVICE_ERROR"


class UnauthenticatedError(ClassroomError):
    """Raised when the bearer credential is missing, malformed, invalid or expired."""

    status_code = 401
    code = "UNAUTHENTICATED"


class ForbiddenError(ClassroomError):
    """Raised when the credential's role is outside the endpoint's role set."""

    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ClassroomError):
    """Raised for a locally absent row or a confirmed remote absence."""

    status_code = 404
    code = "NOT_FOUND"


class UnavailableError(ClassroomError):
    """Raised when a remote target cannot be reached.

    Terminal for the current request; the caller may retry the whole
    request later.
    """

    status_code = 502
    code = "UPSTREAM_UNAVAILABLE"

    def __init__(self, target: str, detail: str = "") -> None:
        self.target = target
        self.detail = detail
        msg = f"Upstream unavailable: {target}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class CircuitOpenError(UnavailableError):
    """Raised when a circuit breaker is open and the call is rejected."""

    code = "CIRCUIT_OPEN"

    def __init__(self, target: str, retry_after: float) -> None:
        self.retry_after = max(0.0, retry_after)
        super().__init__(target, f"circuit open, retry after {self.retry_after:.1f}s")


class RemoteStatusError(ClassroomError):
    """A remote target answered with a non-2xx status.

    Raised by the outbound client only; the verifier translates it into
    a not-found outcome.
    """

    status_code = 502
    code = "UPSTREAM_STATUS"

    def __init__(self, target: str, status: int) -> None:
        self.target = target
        self.status = status
        super().__init__(f"{target} answered HTTP {status}")


class PersistenceError(ClassroomError):
    """Raised when a local write fails.  Detail is logged, never returned."""

    status_code = 500
    code = "PERSISTENCE_FAILURE"


class StructuredErrorResponse(BaseModel):
    """Structured error response.

    Returns ``{"error": str, "code": str, "request_id": str}`` with no stack traces.
    """

    error: str
    code: str
    request_id: str

    @classmethod
    def from_exception(cls, exc: Exception, request_id: str) -> "StructuredErrorResponse":
        """Create from an exception, mapping to machine-readable codes.

        Never leaks internal details for persistence failures or
        unhandled exceptions.
        """
        if isinstance(exc, PersistenceError):
            return cls(error="A storage error occurred", code=exc.code, request_id=request_id)
        if isinstance(exc, ClassroomError):
            return cls(error=str(exc) or exc.code.lower(), code=exc.code, request_id=request_id)
        # Unhandled: never expose internal details
        return cls(
            error="An internal error occurred",
            code="INTERNAL_ERROR",
            request_id=request_id,
        )
