"""Teacher service: owns assignments, which reference admin-owned courses."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from classroom.core.errors import NotFoundError
from classroom.models.schemas import Assignment, AssignmentCreate
from classroom.security.authn import Credential, Role
from classroom.security.policy import require_roles
from classroom.services.dependencies import (
    forwarded_authorization,
    get_repository,
    get_verifier,
    persist,
)
from classroom.storage import Repository
from classroom.verification import COURSE, CrossServiceVerifier

router = APIRouter(prefix="/api/teacher", tags=["teacher"])


@router.post(
    "/courses/{course_id}/assignments",
    response_model=Assignment,
    status_code=status.HTTP_201_CREATED,
)
async def create_assignment(
    course_id: UUID,
    body: AssignmentCreate,
    credential: Credential = Depends(require_roles(Role.TEACHER)),
    authorization: str | None = Depends(forwarded_authorization),
    verifier: CrossServiceVerifier = Depends(get_verifier),
    repository: Repository = Depends(get_repository),
) -> Assignment:
    """Create an assignment once the admin service confirms the course."""
    await verifier.require(COURSE, course_id, authorization)

    assignment = Assignment(course_id=course_id, title=body.title)
    await persist(repository.insert_assignment(assignment), "create_assignment")
    return assignment


@router.get("/assignments/{assignment_id}", response_model=Assignment)
async def get_assignment(
    assignment_id: UUID,
    # Students read assignments to confirm they exist before submitting.
    credential: Credential = Depends(require_roles(Role.TEACHER, Role.STUDENT)),
    repository: Repository = Depends(get_repository),
) -> Assignment:
    assignment = await repository.get_assignment(assignment_id)
    if assignment is None:
        raise NotFoundError("assignment not found")
    return assignment
