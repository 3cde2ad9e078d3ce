from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..db.models import utcnow


class NotificationType(str, Enum):
    """Lifecycle events published after a state change commits."""
    # Accounts
    ACCOUNT_CREATED = "account_created"
    PASSWORD_RESET = "password_reset"
    SUPERVISOR_CHANGED = "supervisor_changed"
    ACCOUNT_DEACTIVATED = "account_deactivated"

    # Application status notifications
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_APPROVED = "application_approved"
    APPLICATION_REJECTED = "application_rejected"
    APPLICATION_COMPLETED = "application_completed"

    # Agreement notifications
    AGREEMENT_SUBMITTED = "agreement_submitted"
    AGREEMENT_VERIFIED = "agreement_verified"
    AGREEMENT_REJECTED = "agreement_rejected"

    # Placement
    INTERNSHIP_ASSIGNED = "internship_assigned"

    # Partnered companies
    COMPANY_REGISTERED = "company_registered"
    COMPANY_REMOVED = "company_removed"

    # Tasks and grading
    TASK_CREATED = "task_created"
    SUBMISSION_SAVED = "submission_saved"
    SUBMISSION_GRADED = "submission_graded"

    # Freelance track
    WEEKLY_UPDATE_SUBMITTED = "weekly_update_submitted"
    WEEKLY_UPDATE_REVIEWED = "weekly_update_reviewed"

    # Evaluation
    REPORT_SAVED = "report_saved"


class Notification(BaseModel):
    """A committed lifecycle event handed to subscribers for delivery."""
    type: NotificationType
    subject: str
    student_id: Optional[str] = None
    recipient_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime = Field(default_factory=utcnow)


def get_notification_subject(notification_type: NotificationType) -> str:
    """
    Return a default subject line for each notification type.

    Args:
        notification_type: Type of notification

    Returns:
        Subject line a delivery channel can use as-is
    """
    subject_templates = {
        NotificationType.ACCOUNT_CREATED: "Your Internship Portal Account Has Been Created",
        NotificationType.PASSWORD_RESET: "Your Password Has Been Changed",
        NotificationType.SUPERVISOR_CHANGED: "Your Faculty Supervisor Has Changed",
        NotificationType.ACCOUNT_DEACTIVATED: "Your Internship Portal Account Has Been Deactivated",
        NotificationType.APPLICATION_SUBMITTED: "Internship Request Received",
        NotificationType.APPLICATION_APPROVED: "Congratulations! Your Internship Request is Approved",
        NotificationType.APPLICATION_REJECTED: "Important Update on Your Internship Request",
        NotificationType.APPLICATION_COMPLETED: "Internship Marked as Completed",
        NotificationType.AGREEMENT_SUBMITTED: "Agreement Submitted for Verification",
        NotificationType.AGREEMENT_VERIFIED: "Your Internship Agreement is Verified",
        NotificationType.AGREEMENT_REJECTED: "Action Required: Please Resubmit Your Agreement",
        NotificationType.INTERNSHIP_ASSIGNED: "Your Internship Placement is Confirmed",
        NotificationType.COMPANY_REGISTERED: "New Partnered Company Registered",
        NotificationType.COMPANY_REMOVED: "Partnered Company Removed",
        NotificationType.TASK_CREATED: "New Internship Task Assigned",
        NotificationType.SUBMISSION_SAVED: "Task Submission Received",
        NotificationType.SUBMISSION_GRADED: "Your Task Submission Has Been Graded",
        NotificationType.WEEKLY_UPDATE_SUBMITTED: "Weekly Update Received",
        NotificationType.WEEKLY_UPDATE_REVIEWED: "Your Weekly Update Has Been Reviewed",
        NotificationType.REPORT_SAVED: "Internship Evaluation Report Available",
    }

    return subject_templates.get(notification_type, "Update on Your Internship")
