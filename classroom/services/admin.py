"""Admin service: owns courses."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from classroom.core.errors import NotFoundError
from classroom.models.schemas import Course, CourseCreate
from classroom.security.authn import Credential, Role
from classroom.security.policy import require_roles
from classroom.services.dependencies import get_repository, persist
from classroom.storage import Repository

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/courses", response_model=Course, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreate,
    credential: Credential = Depends(require_roles(Role.ADMIN)),
    repository: Repository = Depends(get_repository),
) -> Course:
    course = Course(name=body.name)
    await persist(repository.insert_course(course), "create_course")
    return course


@router.get("/courses/{course_id}", response_model=Course)
async def get_course(
    course_id: UUID,
    # Teachers read courses to confirm they exist before creating assignments.
    credential: Credential = Depends(require_roles(Role.ADMIN, Role.TEACHER)),
    repository: Repository = Depends(get_repository),
) -> Course:
    course = await repository.get_course(course_id)
    if course is None:
        raise NotFoundError("course not found")
    return course
