import json
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator


# =================
# STATUS ENUMERATIONS
# =================

class InternshipStatus(str, Enum):
    """Student pipeline position"""
    NONE = "none"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    AGREEMENT_SUBMITTED = "agreement_submitted"
    VERIFIED = "verified"
    INTERNSHIP_ASSIGNED = "internship_assigned"

class InternshipCategory(str, Enum):
    UNIVERSITY_ASSIGNED = "university_assigned"
    SELF_FOUND = "self_found"
    FREELANCER = "freelancer"

class WorkMode(str, Enum):
    ONSITE = "onsite"
    REMOTE = "remote"

class ApplicationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

class AgreementStatus(str, Enum):
    SUBMITTED = "submitted"
    VERIFIED = "verified"

class SourcingType(str, Enum):
    SELF = "Self"
    UNIVERSITY_ASSIGNED = "University Assigned"

class TaskStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"

class SubmissionStatus(str, Enum):
    SUBMITTED = "submitted"
    GRADED_BY_COMPANY = "graded_by_company"
    GRADED_BY_FACULTY = "graded_by_faculty"
    FULLY_GRADED = "fully_graded"

class WeeklyUpdateStatus(str, Enum):
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"

class AdminRole(str, Enum):
    """Staff roles; plain `admin` is a faculty supervisor"""
    ADMIN = "admin"
    COMPANY_ADMIN = "company_admin"
    SUPER_ADMIN = "super_admin"

class Recommendation(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    SATISFACTORY = "satisfactory"
    NEEDS_IMPROVEMENT = "needs_improvement"
    UNSATISFACTORY = "unsatisfactory"

class CompletionStatus(str, Enum):
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    ONGOING = "ongoing"


FACULTY_ROLES = (AdminRole.ADMIN, AdminRole.SUPER_ADMIN)


# =================
# HELPERS
# =================

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """Generate unique record ID, e.g. APP_20250101120000_3F2A9C1D0B7E"""
    timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
    random_part = uuid.uuid4().hex[:12].upper()
    return f"{prefix}_{timestamp}_{random_part}"


def derive_submission_status(company_marks: Optional[float], faculty_marks: Optional[float]) -> SubmissionStatus:
    """Submission status is a pure function of which grades carry marks."""
    if company_marks is not None and faculty_marks is not None:
        return SubmissionStatus.FULLY_GRADED
    if company_marks is not None:
        return SubmissionStatus.GRADED_BY_COMPANY
    if faculty_marks is not None:
        return SubmissionStatus.GRADED_BY_FACULTY
    return SubmissionStatus.SUBMITTED


def _load_json(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, (bytes, str)):
        return json.loads(value)
    return value


# =================
# EMBEDDED DOCUMENTS
# =================

class SupervisorContact(BaseModel):
    """Company-side supervisor named on a self-found application"""
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    designation: Optional[str] = None
    company_address: Optional[str] = None

class FreelancerAccount(BaseModel):
    platform: str = Field(..., min_length=1)
    profile_url: Optional[str] = None
    username: Optional[str] = None

class DocumentRef(BaseModel):
    """Opaque reference to an uploaded file; storage is handled elsewhere"""
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    type: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=utcnow)

class Attachment(BaseModel):
    filename: str = Field(..., min_length=1)
    original_name: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)
    mimetype: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    url: str = Field(..., min_length=1)

class Grade(BaseModel):
    marks: Optional[float] = None
    feedback: Optional[str] = None
    graded_at: Optional[datetime] = None
    graded_by: Optional[str] = None

class ReportScores(BaseModel):
    technical: Optional[float] = Field(None, ge=0, le=100)
    communication: Optional[float] = Field(None, ge=0, le=100)
    teamwork: Optional[float] = Field(None, ge=0, le=100)
    punctuality: Optional[float] = Field(None, ge=0, le=100)

class PlatformLink(BaseModel):
    platform: Optional[str] = None
    url: Optional[str] = None
    description: Optional[str] = None


# =================
# RECORDS
# =================

class Student(BaseModel):
    id: str
    roll_number: str
    name: str
    email: str
    degree: str
    session: str
    password_hash: str = Field(..., repr=False)
    is_active: bool = True
    internship_status: InternshipStatus = InternshipStatus.NONE
    internship_category: Optional[InternshipCategory] = None
    supervisor_id: Optional[str] = None
    assigned_company: Optional[str] = None
    assigned_company_id: Optional[str] = None
    assigned_position: Optional[str] = None
    site_supervisor_name: Optional[str] = None
    site_supervisor_email: Optional[str] = None
    site_supervisor_phone: Optional[str] = None
    internship_assigned_at: Optional[datetime] = None
    work_mode: Optional[WorkMode] = None
    internship_field: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @property
    def is_freelancer(self) -> bool:
        return self.internship_category == InternshipCategory.FREELANCER

    def public_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"password_hash"})


class Admin(BaseModel):
    id: str
    name: str
    email: str
    role: AdminRole = AdminRole.ADMIN
    company: Optional[str] = None
    password_hash: str = Field(..., repr=False)
    is_active: bool = True
    created_at: datetime
    updated_at: datetime

    @property
    def is_faculty(self) -> bool:
        return self.role in FACULTY_ROLES

    def public_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"password_hash"})


class Company(BaseModel):
    """A partnered company students can be placed with; names are unique ignoring case"""
    id: str
    name: str
    email: Optional[str] = None
    website: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None
    is_partnered: bool = True
    created_at: datetime
    updated_at: datetime


class Application(BaseModel):
    id: str
    student_id: str
    company_name: str
    position: str
    internship_type: str
    duration: str
    description: Optional[str] = None
    internship_category: InternshipCategory = InternshipCategory.UNIVERSITY_ASSIGNED
    work_mode: Optional[WorkMode] = None
    internship_field: Optional[str] = None
    self_found_supervisor: Optional[SupervisorContact] = None
    freelancer_accounts: List[FreelancerAccount] = []
    documents: List[DocumentRef] = []
    feedback: Optional[str] = None
    status: ApplicationStatus = ApplicationStatus.PENDING
    applied_at: datetime
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "Application":
        data = dict(row)
        data["self_found_supervisor"] = _load_json(data.get("self_found_supervisor"), None)
        data["freelancer_accounts"] = _load_json(data.get("freelancer_accounts"), [])
        data["documents"] = _load_json(data.get("documents"), [])
        return cls(**data)


class Agreement(BaseModel):
    id: str
    student_id: str
    application_id: str
    sourcing_type: SourcingType
    phone_number: str
    personal_email: str
    home_address: str
    company_address: Optional[str] = None
    supervisor_name: Optional[str] = None
    supervisor_designation: Optional[str] = None
    supervisor_email: Optional[str] = None
    supervisor_phone: Optional[str] = None
    status: AgreementStatus = AgreementStatus.SUBMITTED
    created_at: datetime
    updated_at: datetime


class Task(BaseModel):
    """
    Work item published by a company admin.

    `company` is a snapshot of the creator's company taken when the task
    was created; renaming the company later does not touch existing tasks.
    """
    id: str
    title: str
    description: str
    deadline: datetime
    max_marks: float = 100
    created_by: str
    company: str
    assigned_to: Optional[str] = None
    status: TaskStatus = TaskStatus.ACTIVE
    created_at: datetime
    updated_at: datetime


class Submission(BaseModel):
    id: str
    task_id: str
    student_id: str
    content: str
    attachments: List[Attachment] = []
    submitted_at: datetime
    company_grade: Grade = Field(default_factory=Grade)
    faculty_grade: Grade = Field(default_factory=Grade)
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _derive_status(self):
        # The stored column is kept for querying; the grades are authoritative.
        self.status = derive_submission_status(self.company_grade.marks, self.faculty_grade.marks)
        return self

    @classmethod
    def from_row(cls, row) -> "Submission":
        data = dict(row)
        grades = {}
        for side in ("company", "faculty"):
            grades[f"{side}_grade"] = Grade(
                marks=data.pop(f"{side}_marks"),
                feedback=data.pop(f"{side}_feedback"),
                graded_at=data.pop(f"{side}_graded_at"),
                graded_by=data.pop(f"{side}_graded_by"),
            )
        data["attachments"] = _load_json(data.get("attachments"), [])
        return cls(**data, **grades)


class Report(BaseModel):
    id: str
    student_id: str
    created_by: str
    summary: str
    overall_rating: float
    scores: ReportScores = Field(default_factory=ReportScores)
    recommendation: Recommendation
    completion_status: CompletionStatus = CompletionStatus.ONGOING
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "Report":
        data = dict(row)
        data["scores"] = _load_json(data.get("scores"), {})
        return cls(**data)


class WeeklyUpdate(BaseModel):
    id: str
    student_id: str
    week_number: int
    work_summary: str
    platform_links: List[PlatformLink] = []
    hours_worked: float = 0
    technologies_used: Optional[str] = None
    challenges: Optional[str] = None
    faculty_remarks: Optional[str] = None
    faculty_reviewed_at: Optional[datetime] = None
    faculty_reviewed_by: Optional[str] = None
    status: WeeklyUpdateStatus = WeeklyUpdateStatus.SUBMITTED
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row) -> "WeeklyUpdate":
        data = dict(row)
        data["platform_links"] = _load_json(data.get("platform_links"), [])
        return cls(**data)
