"""
Student internship status graph.

The only way a component moves `internship_status` is through
`StatusStateMachine.apply`, which performs a compare-and-set against the
legal source states of the requested target. Callers run it last inside
their store transaction so the entity write and the status write commit
together.
"""

from typing import Dict, FrozenSet, Iterable, Optional

import structlog

from ..db.models import InternshipStatus, Student
from ..db.store import InternshipStore
from ..errors import InvalidStateError, NotFoundError

logger = structlog.get_logger(__name__)

S = InternshipStatus

TRANSITIONS: Dict[InternshipStatus, FrozenSet[InternshipStatus]] = {
    S.NONE: frozenset({S.SUBMITTED}),
    S.SUBMITTED: frozenset({S.APPROVED, S.REJECTED}),
    S.REJECTED: frozenset({S.SUBMITTED}),
    S.APPROVED: frozenset({S.AGREEMENT_SUBMITTED}),
    # Re-submitting an agreement before review keeps the student where they are
    S.AGREEMENT_SUBMITTED: frozenset({S.AGREEMENT_SUBMITTED, S.VERIFIED, S.APPROVED}),
    S.VERIFIED: frozenset({S.INTERNSHIP_ASSIGNED}),
    S.INTERNSHIP_ASSIGNED: frozenset(),
}


def can_transition(from_status: InternshipStatus, to_status: InternshipStatus) -> bool:
    return InternshipStatus(to_status) in TRANSITIONS[InternshipStatus(from_status)]


def sources_for(to_status: InternshipStatus) -> FrozenSet[InternshipStatus]:
    """Every status from which `to_status` is reachable in one step."""
    to_status = InternshipStatus(to_status)
    return frozenset(s for s, targets in TRANSITIONS.items() if to_status in targets)


class StatusStateMachine:
    """Guards and applies internship status transitions."""

    def __init__(self, store: InternshipStore):
        self.store = store

    def guard(self, student: Student, to_status: InternshipStatus,
              allowed_from: Optional[Iterable[InternshipStatus]] = None):
        """Raise InvalidStateError unless `student` may move to `to_status`."""
        sources = self._sources(to_status, allowed_from)
        if student.internship_status not in sources:
            raise InvalidStateError(
                f"Cannot move student from '{student.internship_status.value}' to '{InternshipStatus(to_status).value}'",
                {"student_id": student.id, "current": student.internship_status.value,
                 "target": InternshipStatus(to_status).value}
            )

    def apply(self, student_id: str, to_status: InternshipStatus,
              allowed_from: Optional[Iterable[InternshipStatus]] = None, **fields) -> Student:
        """
        Move a student to `to_status` with a compare-and-set.

        Args:
            student_id: Student to move
            to_status: Target status
            allowed_from: Narrow the legal sources further (e.g. a rejected
                agreement only returns students that are `agreement_submitted`)
            **fields: Extra student columns written in the same statement

        Returns:
            The student after the write

        Raises:
            NotFoundError: Unknown student
            InvalidStateError: Current status is not a legal source
        """
        to_status = InternshipStatus(to_status)
        sources = self._sources(to_status, allowed_from)
        with self.store.transaction():
            moved = self.store.transition_student(student_id, sources, to_status, **fields)
            student = self.store.get_student(student_id)
        if student is None:
            raise NotFoundError("Student not found", {"student_id": student_id})
        if not moved:
            self.guard(student, to_status, allowed_from)
            # Status matched a source after the failed write; only a concurrent change explains it
            raise InvalidStateError("Student status changed concurrently", {"student_id": student_id})

        logger.info("Student status changed", student_id=student_id, to_status=to_status.value)
        return student

    @staticmethod
    def _sources(to_status: InternshipStatus,
                 allowed_from: Optional[Iterable[InternshipStatus]]) -> FrozenSet[InternshipStatus]:
        sources = sources_for(to_status)
        if allowed_from is not None:
            sources = sources & frozenset(InternshipStatus(s) for s in allowed_from)
        return sources
