"""Student service: owns submissions, which reference teacher-owned assignments."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from classroom.models.schemas import Submission, SubmissionCreate
from classroom.security.authn import Credential, Role
from classroom.security.policy import require_roles
from classroom.services.dependencies import (
    forwarded_authorization,
    get_repository,
    get_verifier,
    persist,
)
from classroom.storage import Repository
from classroom.verification import ASSIGNMENT, CrossServiceVerifier

router = APIRouter(prefix="/api/student", tags=["student"])


@router.post(
    "/assignments/{assignment_id}/submissions",
    response_model=Submission,
    status_code=status.HTTP_201_CREATED,
)
async def create_submission(
    assignment_id: UUID,
    body: SubmissionCreate,
    credential: Credential = Depends(require_roles(Role.STUDENT)),
    authorization: str | None = Depends(forwarded_authorization),
    verifier: CrossServiceVerifier = Depends(get_verifier),
    repository: Repository = Depends(get_repository),
) -> Submission:
    """Submit work for an assignment the teacher service confirms exists."""
    await verifier.require(ASSIGNMENT, assignment_id, authorization)

    submission = Submission(
        assignment_id=assignment_id,
        student_id=credential.subject,
        content=body.content,
    )
    await persist(repository.insert_submission(submission), "create_submission")
    return submission
