"""CrossServiceVerifier — existence checks against data owned by another service.

Before a dependent write, the owning service's own read endpoint is asked
whether the referenced entity exists.  The caller's ``Authorization`` value
is forwarded unchanged, so the remote service applies its own access
policy to the original caller.

    remote 2xx                           → CallOutcome.EXISTS
    remote non-2xx                       → CallOutcome.NOT_FOUND
    transport error, timeout, open circuit → CallOutcome.UNAVAILABLE
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from uuid import UUID

from classroom.core.errors import (
    NotFoundError,
    RemoteStatusError,
    UnavailableError,
)
from classroom.service_client import ServiceClient

logger = logging.getLogger(__name__)


class CallOutcome(str, enum.Enum):
    """Result of one existence verification."""

    EXISTS = "exists"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ReferenceKind:
    """A foreign-owned entity type and where its read endpoint lives.

    Attributes:
        name:          Entity name used in error messages.
        target:        Target key of the owning service.
        path_template: Read path with an ``{id}`` placeholder.
    """

    name: str
    target: str
    path_template: str

    def path_for(self, entity_id: UUID | str) -> str:
        return self.path_template.format(id=entity_id)


COURSE = ReferenceKind(name="course", target="admin", path_template="/api/admin/courses/{id}")
ASSIGNMENT = ReferenceKind(
    name="assignment",
    target="teacher",
    path_template="/api/teacher/assignments/{id}",
)


class CrossServiceVerifier:
    """Translates outbound probe results into write-path decisions.

    Args:
        client:   Shared ``ServiceClient`` (retry + circuit breaker).
        deadline: Seconds the whole verification may take, retries included.
    """

    def __init__(self, client: ServiceClient, deadline: float = 30.0) -> None:
        self._client = client
        self._deadline = deadline

    async def verify(
        self,
        kind: ReferenceKind,
        entity_id: UUID | str,
        authorization: str | None,
    ) -> CallOutcome:
        """Ask the owning service whether *entity_id* exists.

        Never raises for remote failures; cancellation of the inbound
        request propagates.
        """
        try:
            await self._client.get(
                kind.target,
                kind.path_for(entity_id),
                authorization,
                deadline=self._deadline,
            )
        except RemoteStatusError as exc:
            logger.info("%s %s not confirmed by %s: HTTP %d", kind.name, entity_id, kind.target, exc.status)
            return CallOutcome.NOT_FOUND
        except UnavailableError as exc:
            logger.warning("%s-service call failed: %s", kind.target, exc)
            return CallOutcome.UNAVAILABLE
        return CallOutcome.EXISTS

    async def require(
        self,
        kind: ReferenceKind,
        entity_id: UUID | str,
        authorization: str | None,
    ) -> None:
        """Return only when the entity exists.

        Raises:
            NotFoundError: The owning service answered non-2xx.
            UnavailableError: The owning service could not be asked.
        """
        outcome = await self.verify(kind, entity_id, authorization)
        if outcome is CallOutcome.NOT_FOUND:
            raise NotFoundError(f"{kind.name} not found")
        if outcome is CallOutcome.UNAVAILABLE:
            raise UnavailableError(kind.target, f"{kind.name} service unavailable")
