"""
Request payloads for every lifecycle operation.

Each operation parses its input into one of these models before any
state guard runs, so malformed input surfaces as ValidationError and never
as InvalidStateError.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar, Union

import pydantic
from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from ..db.models import (
    AdminRole, Attachment, CompletionStatus, DocumentRef, FreelancerAccount,
    InternshipCategory, PlatformLink, Recommendation, ReportScores, SourcingType,
    SupervisorContact, TaskStatus, WorkMode
)
from ..errors import ValidationError

ROLL_NUMBER_PATTERN = re.compile(r'^[A-Z]{2}\d{2}-[A-Z]{2,3}-\d+$')

M = TypeVar('M', bound=BaseModel)


def parse_request(model: Type[M], payload: Union[M, dict, None] = None, **fields: Any) -> M:
    """
    Validate a payload against a request model.

    Args:
        model: Request model class
        payload: Model instance or mapping; keyword fields are merged over it

    Returns:
        Validated model instance

    Raises:
        ValidationError: If the payload does not satisfy the model
    """
    if isinstance(payload, model) and not fields:
        return payload
    data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload or {})
    data.update(fields)
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        problems = [
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError(f"Invalid {model.__name__}: {'; '.join(problems)}",
                              {"errors": problems}) from e


class _Request(BaseModel):
    model_config = {"str_strip_whitespace": True, "extra": "forbid"}


# =================
# ACCOUNTS
# =================

class RegisterStudentRequest(_Request):
    roll_number: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: EmailStr
    degree: str = Field(..., min_length=1)
    session: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator('roll_number', 'degree', 'session')
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.upper()

    @field_validator('roll_number')
    @classmethod
    def _roll_number_format(cls, v: str) -> str:
        if not ROLL_NUMBER_PATTERN.match(v):
            raise ValueError("Invalid roll number format, expected e.g. FA21-BCS-001")
        return v

    @field_validator('email')
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()


class CreateAdminRequest(_Request):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: AdminRole = AdminRole.ADMIN
    company: Optional[str] = None

    @field_validator('email')
    @classmethod
    def _lower(cls, v: str) -> str:
        return v.lower()

    @model_validator(mode="after")
    def _company_for_company_admin(self):
        if self.role == AdminRole.COMPANY_ADMIN and not self.company:
            raise ValueError("company is required for company_admin accounts")
        if self.role != AdminRole.COMPANY_ADMIN:
            self.company = None
        return self


class ChangeSupervisorRequest(_Request):
    student_id: str = Field(..., min_length=1)
    supervisor_id: Optional[str] = Field(None, min_length=1)


# =================
# COMPANIES
# =================

class CreateCompanyRequest(_Request):
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    website: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    is_partnered: bool = True

    @field_validator('email')
    @classmethod
    def _lower(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


# =================
# APPLICATIONS
# =================

class SubmitApplicationRequest(_Request):
    company_name: str = Field(..., min_length=1)
    position: str = Field(..., min_length=1)
    internship_type: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    description: Optional[str] = None
    internship_category: InternshipCategory = InternshipCategory.UNIVERSITY_ASSIGNED
    work_mode: Optional[WorkMode] = None
    internship_field: Optional[str] = None
    self_found_supervisor: Optional[SupervisorContact] = None
    freelancer_accounts: List[FreelancerAccount] = []
    documents: List[DocumentRef] = []

    @model_validator(mode="after")
    def _category_details(self):
        if self.internship_category == InternshipCategory.SELF_FOUND:
            sup = self.self_found_supervisor
            if sup is None or not sup.name or not sup.email:
                raise ValueError("self_found applications need the company supervisor's name and email")
        elif self.internship_category == InternshipCategory.FREELANCER:
            if not self.freelancer_accounts:
                raise ValueError("freelancer applications need at least one freelancer account")
            self.work_mode = None
        return self


class ApplicationDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class DecideApplicationRequest(_Request):
    decision: ApplicationDecision
    feedback: Optional[str] = None


# =================
# AGREEMENTS
# =================

class SubmitAgreementRequest(_Request):
    application_id: str = Field(..., min_length=1)
    sourcing_type: SourcingType
    phone_number: str = Field(..., min_length=1)
    personal_email: EmailStr
    home_address: str = Field(..., min_length=1)
    company_address: Optional[str] = None
    supervisor_name: Optional[str] = None
    supervisor_designation: Optional[str] = None
    supervisor_email: Optional[EmailStr] = None
    supervisor_phone: Optional[str] = None

    @model_validator(mode="after")
    def _self_sourced_details(self):
        if self.sourcing_type == SourcingType.SELF:
            missing = [
                name for name in ('company_address', 'supervisor_name', 'supervisor_email')
                if not getattr(self, name)
            ]
            if missing:
                raise ValueError(f"self-sourced agreements require {', '.join(missing)}")
        return self


class AgreementDecision(str, Enum):
    VERIFIED = "verified"
    REJECTED = "rejected"


class VerifyAgreementRequest(_Request):
    decision: AgreementDecision


# =================
# PLACEMENT
# =================

class SiteSupervisor(_Request):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None


class AssignPlacementRequest(_Request):
    faculty_supervisor_id: str = Field(..., min_length=1)
    company: Optional[str] = None
    position: str = Field(..., min_length=1)
    site_supervisor: SiteSupervisor = Field(default_factory=SiteSupervisor)


# =================
# TASKS & GRADING
# =================

class CreateTaskRequest(_Request):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    deadline: datetime
    max_marks: Optional[float] = Field(None, gt=0)
    assigned_to: Optional[str] = None


class UpdateTaskRequest(_Request):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    deadline: Optional[datetime] = None
    max_marks: Optional[float] = Field(None, gt=0)
    status: Optional[TaskStatus] = None


class SubmitTaskRequest(_Request):
    content: str = Field(..., min_length=1)
    attachments: List[Attachment] = []


class GradeRequest(_Request):
    marks: float = Field(..., ge=0)
    feedback: Optional[str] = None


# =================
# WEEKLY UPDATES
# =================

class SubmitWeeklyUpdateRequest(_Request):
    week_number: int = Field(..., ge=1)
    work_summary: str = Field(..., min_length=1)
    platform_links: List[PlatformLink] = []
    hours_worked: float = Field(0, ge=0)
    technologies_used: Optional[str] = None
    challenges: Optional[str] = None


class ReviewWeeklyUpdateRequest(_Request):
    remarks: str = Field(..., min_length=1)


# =================
# REPORTS
# =================

class ReportRequest(_Request):
    summary: str = Field(..., min_length=1)
    overall_rating: float = Field(..., ge=0, le=100)
    recommendation: Recommendation
    scores: Optional[ReportScores] = None
    completion_status: Optional[CompletionStatus] = None
