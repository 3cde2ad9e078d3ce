from typing import Any, Dict, Optional, Union

import structlog

from ..db.models import ApplicationStatus, InternshipCategory, InternshipStatus, Student, utcnow
from ..errors import NotFoundError, ValidationError
from ..notifications import NotificationType
from .base import Component
from .models import AssignPlacementRequest, SiteSupervisor, parse_request

logger = structlog.get_logger(__name__)


class PlacementAssignment(Component):
    """Final edge of the pipeline: place a verified student with a company and a faculty supervisor."""

    def assign(self, student_id: str, faculty_supervisor_id: str, company: Optional[str], position: str,
               site_supervisor: Union[SiteSupervisor, Dict[str, Any], None] = None) -> Student:
        """
        Assign a verified student to a placement.

        Freelancers are placed with the configured freelance company name
        regardless of `company`; everyone else needs a company. Site
        supervisor details fall back to the self-found supervisor named on
        the approved application. The placement links to the registered
        company whose name matches `company` ignoring case, if there is one.

        Raises:
            NotFoundError: Unknown student, or supervisor is not an active faculty account
            InvalidStateError: Student is not verified
            ValidationError: Company missing for a non-freelance placement
        """
        if isinstance(site_supervisor, SiteSupervisor):
            site_supervisor = site_supervisor.model_dump()
        request = parse_request(
            AssignPlacementRequest,
            faculty_supervisor_id=faculty_supervisor_id,
            company=company,
            position=position,
            site_supervisor=site_supervisor or {},
        )

        with self.store.transaction():
            student = self._require_student(student_id)
            self.status.guard(student, InternshipStatus.INTERNSHIP_ASSIGNED)

            supervisor = self.store.get_admin(request.faculty_supervisor_id)
            if supervisor is None or not supervisor.is_active or not supervisor.is_faculty:
                raise NotFoundError("Faculty supervisor not found",
                                    {"faculty_supervisor_id": request.faculty_supervisor_id})

            application = self.store.latest_application(student_id, ApplicationStatus.APPROVED.value)
            category = application.internship_category if application else InternshipCategory.UNIVERSITY_ASSIGNED

            if category == InternshipCategory.FREELANCER:
                company_name = self.settings.freelance_company_name
            elif request.company:
                company_name = request.company
            else:
                raise ValidationError("company is required for non-freelance placements",
                                      {"student_id": student_id, "category": category.value})

            registered = self.store.get_company_by_name(company_name)
            fallback = application.self_found_supervisor if application else None
            site = request.site_supervisor
            fields = {
                'supervisor_id': supervisor.id,
                'assigned_company': company_name,
                'assigned_company_id': registered.id if registered else None,
                'assigned_position': request.position,
                'site_supervisor_name': site.name or (fallback.name if fallback else None),
                'site_supervisor_email': site.email or (fallback.email if fallback else None),
                'site_supervisor_phone': site.phone or (fallback.phone if fallback else None),
                'internship_assigned_at': utcnow(),
                'internship_category': category,
                'work_mode': application.work_mode if application else None,
                'internship_field': application.internship_field if application else None,
            }

            moved = self.store.bulk_update_applications(student_id, ApplicationStatus.APPROVED,
                                                        ApplicationStatus.IN_PROGRESS)
            student = self.status.apply(student_id, InternshipStatus.INTERNSHIP_ASSIGNED, **fields)

        logger.info("Internship assigned", student_id=student_id, company=company_name,
                    company_id=student.assigned_company_id, supervisor_id=supervisor.id, applications_started=moved)
        self._notify(NotificationType.INTERNSHIP_ASSIGNED, student_id=student_id, recipient_id=supervisor.id,
                     company=company_name, position=request.position,
                     site_supervisor_email=student.site_supervisor_email)
        return student
