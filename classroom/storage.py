"""Repository port for locally owned rows, with an in-memory adapter.

Each service only ever touches its own slice (admin → courses, teacher →
assignments, student → submissions).  Production deployments plug a
relational adapter in behind the same ``Repository`` protocol.
"""

from __future__ import annotations

import asyncio
from typing import Protocol
from uuid import UUID

from classroom.models.schemas import Assignment, Course, Submission


class Repository(Protocol):
    """Persistence collaborator used by the service routers."""

    async def ping(self) -> None: ...

    async def insert_course(self, course: Course) -> None: ...

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def insert_assignment(self, assignment: Assignment) -> None: ...

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None: ...

    async def insert_submission(self, submission: Submission) -> None: ...

    async def get_submission(self, submission_id: UUID) -> Submission | None: ...


class InMemoryRepository:
    """Dict-backed ``Repository`` for local runs and tests."""

    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._assignments: dict[UUID, Assignment] = {}
        self._submissions: dict[UUID, Submission] = {}
        self._lock = asyncio.Lock()

    async def ping(self) -> None:
        return None

    async def insert_course(self, course: Course) -> None:
        async with self._lock:
            _insert(self._courses, course.id, course)

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def insert_assignment(self, assignment: Assignment) -> None:
        async with self._lock:
            _insert(self._assignments, assignment.id, assignment)

    async def get_assignment(self, assignment_id: UUID) -> Assignment | None:
        return self._assignments.get(assignment_id)

    async def insert_submission(self, submission: Submission) -> None:
        async with self._lock:
            _insert(self._submissions, submission.id, submission)

    async def get_submission(self, submission_id: UUID) -> Submission | None:
        return self._submissions.get(submission_id)

    def counts(self) -> dict[str, int]:
        """Row counts per table."""
        return {
            "courses": len(self._courses),
            "assignments": len(self._assignments),
            "submissions": len(self._submissions),
        }


def _insert(table: dict, key: UUID, row) -> None:
    if key in table:
        raise KeyError(f"duplicate primary key {key}")
    table[key] = row
