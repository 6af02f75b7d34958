"""Request/response Pydantic models for the classroom services.

Field constraints only check presence and shape; identifiers and
timestamps are assigned server-side.
"""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(UTC)


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    service: str
    version: str
    status: str
    uptime_seconds: float
    circuits: list[dict] = Field(default_factory=list)


class ReadyResponse(BaseModel):
    """Response model for GET /ready."""

    status: str


# ── Admin: courses ──────────────────────────────────────────────────────


class CourseCreate(BaseModel):
    """Body of POST /api/admin/courses."""

    name: str = Field(..., min_length=1, max_length=500)


class Course(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str
    created_at: datetime = Field(default_factory=_utcnow)


# ── Teacher: assignments ────────────────────────────────────────────────


class AssignmentCreate(BaseModel):
    """Body of POST /api/teacher/courses/{course_id}/assignments."""

    title: str = Field(..., min_length=1, max_length=500)


class Assignment(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    course_id: UUID
    title: str
    created_at: datetime = Field(default_factory=_utcnow)


# ── Student: submissions ────────────────────────────────────────────────


class SubmissionCreate(BaseModel):
    """Body of POST /api/student/assignments/{assignment_id}/submissions."""

    content: str | None = None


class Submission(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    assignment_id: UUID
    student_id: str
    content: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
