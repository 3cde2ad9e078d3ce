from typing import Any, Dict, List, Optional, Union

import structlog

from ..db.models import InternshipStatus, Report
from ..errors import AuthorizationError, InvalidStateError
from ..notifications import NotificationType
from .base import Component
from .models import ReportRequest, parse_request

logger = structlog.get_logger(__name__)


class ReportFinalization(Component):
    """Final evaluation written by the student's faculty supervisor."""

    def create(self, student_id: str, author_admin_id: str,
               evaluation: Union[ReportRequest, Dict[str, Any]]) -> Report:
        """
        Create or update the author's report for a student.

        Optional fields left unset (`scores`, `completion_status`) keep the
        values already stored on an update.

        Raises:
            AuthorizationError: Author is not the student's current supervisor
            InvalidStateError: Student has no assigned internship
        """
        request = parse_request(ReportRequest, evaluation)

        with self.store.transaction():
            student = self._require_student(student_id)
            if not student.supervisor_id or student.supervisor_id != author_admin_id:
                raise AuthorizationError("Only the student's faculty supervisor can write the report",
                                         {"student_id": student_id, "admin_id": author_admin_id})
            if student.internship_status != InternshipStatus.INTERNSHIP_ASSIGNED:
                raise InvalidStateError("Reports are written for assigned internships only",
                                        {"student_id": student_id, "status": student.internship_status.value})
            report = self.store.upsert_report(
                student_id, author_admin_id,
                summary=request.summary,
                overall_rating=request.overall_rating,
                recommendation=request.recommendation,
                scores=request.scores.model_dump() if request.scores is not None else None,
                completion_status=request.completion_status,
            )

        logger.info("Report saved", report_id=report.id, student_id=student_id,
                    overall_rating=report.overall_rating)
        self._notify(NotificationType.REPORT_SAVED, student_id=student_id, report_id=report.id,
                     recommendation=report.recommendation.value)
        return report

    def get_for_student(self, student_id: str, author_admin_id: Optional[str] = None) -> List[Report]:
        return self.store.list_reports(student_id=student_id, created_by=author_admin_id)

    def list_by_author(self, author_admin_id: str) -> List[Report]:
        return self.store.list_reports(created_by=author_admin_id)
