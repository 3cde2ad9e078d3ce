"""
Application lifecycle: submission, resubmission after rejection, the
administrative decision and completion of a running placement.
"""

from typing import Any, Dict, List, Optional, Union

import structlog

from ..db.models import Application, ApplicationStatus, InternshipStatus
from ..errors import ConflictError, InvalidStateError, NotFoundError
from ..notifications import NotificationType
from .base import Component
from .models import (
    ApplicationDecision, DecideApplicationRequest, SubmitApplicationRequest, parse_request
)

logger = structlog.get_logger(__name__)


class ApplicationLifecycle(Component):

    def submit(self, student_id: str,
               payload: Union[SubmitApplicationRequest, Dict[str, Any]]) -> Application:
        """
        Create the student's application, or resubmit the rejected one in place.

        Raises:
            ValidationError: Malformed payload
            NotFoundError: Unknown student
            ConflictError: The student already has an active application
            InvalidStateError: Student status does not allow a submission
        """
        request = parse_request(SubmitApplicationRequest, payload)
        fields = request.model_dump()
        log = logger.bind(student_id=student_id)

        with self.store.transaction():
            student = self._require_student(student_id)
            active = self.store.active_application(student_id)
            if active is not None:
                raise ConflictError("Student already has an active application",
                                    {"student_id": student_id, "application_id": active.id,
                                     "status": active.status.value})
            self.status.guard(student, InternshipStatus.SUBMITTED)

            previous = self.store.latest_application(student_id)
            if previous is not None and previous.status == ApplicationStatus.REJECTED:
                if not self.store.resubmit_application(previous.id, fields):
                    raise ConflictError("Application changed concurrently", {"application_id": previous.id})
                application = self.store.get_application(previous.id)
                resubmitted = True
            else:
                application = self.store.insert_application({'student_id': student_id, **fields})
                resubmitted = False

            self.status.apply(student_id, InternshipStatus.SUBMITTED)

        log.info("Application submitted", application_id=application.id, resubmitted=resubmitted,
                 category=application.internship_category.value)
        self._notify(NotificationType.APPLICATION_SUBMITTED, student_id=student_id,
                     application_id=application.id, company_name=application.company_name,
                     resubmitted=resubmitted)
        return application

    def decide(self, application_id: str, decision: Union[ApplicationDecision, str],
               feedback: Optional[str] = None) -> Application:
        """
        Approve or reject a pending application.

        Every other pending application of the same student receives the same
        decision, and the student's category follows the decision.
        """
        request = parse_request(DecideApplicationRequest, decision=decision, feedback=feedback)
        approved = request.decision == ApplicationDecision.APPROVED
        target = ApplicationStatus.APPROVED if approved else ApplicationStatus.REJECTED

        with self.store.transaction():
            application = self.store.get_application(application_id)
            if application is None:
                raise NotFoundError("Application not found", {"application_id": application_id})
            if application.status != ApplicationStatus.PENDING:
                raise InvalidStateError(
                    f"Only pending applications can be decided, this one is '{application.status.value}'",
                    {"application_id": application_id, "status": application.status.value}
                )
            if not self.store.set_application_status(application_id, ApplicationStatus.PENDING, target,
                                                     request.feedback):
                raise InvalidStateError("Application was decided concurrently",
                                        {"application_id": application_id})
            self.store.bulk_update_applications(application.student_id, ApplicationStatus.PENDING, target,
                                                request.feedback)

            category = application.internship_category if approved else None
            self.status.apply(
                application.student_id,
                InternshipStatus.APPROVED if approved else InternshipStatus.REJECTED,
                internship_category=category,
            )
            application = self.store.get_application(application_id)

        logger.info("Application decided", application_id=application_id,
                    student_id=application.student_id, decision=target.value)
        self._notify(
            NotificationType.APPLICATION_APPROVED if approved else NotificationType.APPLICATION_REJECTED,
            student_id=application.student_id, application_id=application_id, feedback=request.feedback,
        )
        return application

    def list_for_student(self, student_id: str) -> List[Application]:
        self._require_student(student_id)
        return self.store.list_applications(student_id=student_id)

    def complete(self, student_id: str) -> Application:
        """Close the student's running placement application; the student status is left alone."""
        with self.store.transaction():
            self._require_student(student_id)
            application = self.store.latest_application(student_id, ApplicationStatus.IN_PROGRESS)
            if application is None:
                raise InvalidStateError("Student has no internship in progress", {"student_id": student_id})
            if not self.store.set_application_status(application.id, ApplicationStatus.IN_PROGRESS,
                                                     ApplicationStatus.COMPLETED):
                raise InvalidStateError("Application changed concurrently", {"application_id": application.id})
            application = self.store.get_application(application.id)

        logger.info("Application completed", application_id=application.id, student_id=student_id)
        self._notify(NotificationType.APPLICATION_COMPLETED, student_id=student_id, application_id=application.id)
        return application
