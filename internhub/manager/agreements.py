"""
Agreement verification gate between an approved application and placement.
"""

from typing import Any, Dict, List, Optional, Union

import structlog

from ..db.models import Agreement, AgreementStatus, ApplicationStatus, InternshipStatus
from ..errors import AuthorizationError, InvalidStateError, NotFoundError
from ..notifications import NotificationType
from .base import Component
from .models import AgreementDecision, SubmitAgreementRequest, VerifyAgreementRequest, parse_request

logger = structlog.get_logger(__name__)


class AgreementGate(Component):

    def submit(self, student_id: str, application_id: str,
               details: Union[SubmitAgreementRequest, Dict[str, Any]]) -> Agreement:
        """
        Create or overwrite the student's agreement for an approved application.

        Raises:
            ValidationError: Malformed details
            NotFoundError: Unknown student or application
            AuthorizationError: The application belongs to another student
            InvalidStateError: Student or application not in an approved state,
                or the agreement is already verified
        """
        request = parse_request(SubmitAgreementRequest, details, application_id=application_id)

        with self.store.transaction():
            student = self._require_student(student_id)
            application = self.store.get_application(request.application_id)
            if application is None:
                raise NotFoundError("Application not found", {"application_id": request.application_id})
            if application.student_id != student_id:
                raise AuthorizationError("Application belongs to another student",
                                         {"application_id": application.id, "student_id": student_id})
            if application.status != ApplicationStatus.APPROVED:
                raise InvalidStateError(
                    f"Agreement requires an approved application, this one is '{application.status.value}'",
                    {"application_id": application.id, "status": application.status.value}
                )
            self.status.guard(student, InternshipStatus.AGREEMENT_SUBMITTED)

            agreement = self.store.upsert_agreement({'student_id': student_id, **request.model_dump()})
            if agreement is None:
                raise InvalidStateError("Agreement is already verified", {"student_id": student_id})

            self.status.apply(student_id, InternshipStatus.AGREEMENT_SUBMITTED)

        logger.info("Agreement submitted", agreement_id=agreement.id, student_id=student_id,
                    sourcing_type=agreement.sourcing_type.value)
        self._notify(NotificationType.AGREEMENT_SUBMITTED, student_id=student_id, agreement_id=agreement.id)
        return agreement

    def verify(self, agreement_id: str, decision: Union[AgreementDecision, str]) -> Agreement:
        """
        Verify or reject a submitted agreement.

        Verification marks the agreement `verified` and the student `verified`.
        Rejection leaves the agreement `submitted` for the student to correct
        and sends the student back to `approved`.
        """
        request = parse_request(VerifyAgreementRequest, decision=decision)
        verified = request.decision == AgreementDecision.VERIFIED

        with self.store.transaction():
            agreement = self.store.get_agreement(agreement_id)
            if agreement is None:
                raise NotFoundError("Agreement not found", {"agreement_id": agreement_id})
            if agreement.status != AgreementStatus.SUBMITTED:
                raise InvalidStateError("Agreement has already been verified", {"agreement_id": agreement_id})

            if verified:
                if not self.store.set_agreement_status(agreement_id, AgreementStatus.SUBMITTED,
                                                       AgreementStatus.VERIFIED):
                    raise InvalidStateError("Agreement was verified concurrently", {"agreement_id": agreement_id})
                self.status.apply(agreement.student_id, InternshipStatus.VERIFIED,
                                  allowed_from=[InternshipStatus.AGREEMENT_SUBMITTED])
            else:
                self.status.apply(agreement.student_id, InternshipStatus.APPROVED,
                                  allowed_from=[InternshipStatus.AGREEMENT_SUBMITTED])
            agreement = self.store.get_agreement(agreement_id)

        logger.info("Agreement reviewed", agreement_id=agreement_id, student_id=agreement.student_id,
                    decision=request.decision.value)
        self._notify(
            NotificationType.AGREEMENT_VERIFIED if verified else NotificationType.AGREEMENT_REJECTED,
            student_id=agreement.student_id, agreement_id=agreement_id,
        )
        return agreement

    def get_for_student(self, student_id: str) -> Optional[Agreement]:
        return self.store.get_agreement_for_student(student_id)

    def list_pending(self) -> List[Agreement]:
        """Agreements waiting for review: submitted, with the student still awaiting a decision."""
        pending = []
        for agreement in self.store.list_agreements(AgreementStatus.SUBMITTED.value):
            student = self.store.get_student(agreement.student_id)
            if student and student.internship_status == InternshipStatus.AGREEMENT_SUBMITTED:
                pending.append(agreement)
        return pending
