"""
Read-side composition.

Explicit read models assembled from the store for each actor's view of
the lifecycle. Nothing here writes.
"""

from typing import List, Optional

from pydantic import BaseModel

from ..db.models import (
    AgreementStatus, ApplicationStatus, InternshipCategory, InternshipStatus,
    Recommendation, Student, Submission, Task
)
from ..errors import NotFoundError
from .base import Component


class StudentTask(BaseModel):
    task: Task
    submission: Optional[Submission] = None


class GradingItem(BaseModel):
    submission: Submission
    task: Task
    student_id: str
    student_name: str
    roll_number: str


class PipelineSummary(BaseModel):
    student_id: str
    internship_status: InternshipStatus
    internship_category: Optional[InternshipCategory] = None
    application_id: Optional[str] = None
    application_status: Optional[ApplicationStatus] = None
    agreement_status: Optional[AgreementStatus] = None
    assigned_company: Optional[str] = None
    supervisor_id: Optional[str] = None
    report_submitted: bool = False
    overall_rating: Optional[float] = None
    recommendation: Optional[Recommendation] = None


class LifecycleViews(Component):

    def tasks_for_student(self, student_id: str) -> List[StudentTask]:
        """Visible tasks with the student's own submission attached where one exists."""
        student = self._require_student(student_id)
        if student.is_freelancer or not student.assigned_company:
            return []
        tasks = self.store.list_visible_tasks(student.assigned_company, student.id)
        submissions = {
            s.task_id: s for s in self.store.list_submissions(
                task_ids=[t.id for t in tasks], student_ids=[student.id]
            )
        }
        return [StudentTask(task=t, submission=submissions.get(t.id)) for t in tasks]

    def submissions_for_company_admin(self, admin_id: str) -> List[GradingItem]:
        """Submissions against every task the admin created."""
        self._require_admin(admin_id)
        tasks = {t.id: t for t in self.store.list_tasks(created_by=admin_id)}
        return self._grading_items(self.store.list_submissions(task_ids=list(tasks)), tasks)

    def submissions_for_supervisor(self, admin_id: str) -> List[GradingItem]:
        """Submissions of every student the faculty admin supervises."""
        self._require_admin(admin_id)
        students = self.store.list_students(supervisor_id=admin_id)
        submissions = self.store.list_submissions(student_ids=[s.id for s in students])
        tasks = {}
        for submission in submissions:
            if submission.task_id not in tasks:
                tasks[submission.task_id] = self.store.get_task(submission.task_id)
        return self._grading_items(submissions, tasks)

    def students_at_company(self, company: str) -> List[Student]:
        return self.store.list_students(company=company,
                                        internship_status=InternshipStatus.INTERNSHIP_ASSIGNED.value)

    def students_for_supervisor(self, admin_id: str) -> List[Student]:
        return self.store.list_students(supervisor_id=admin_id)

    def pipeline_summary(self, student_id: str) -> PipelineSummary:
        student = self._require_student(student_id)
        application = self.store.latest_application(student_id)
        agreement = self.store.get_agreement_for_student(student_id)
        reports = self.store.list_reports(student_id=student_id, created_by=student.supervisor_id) \
            if student.supervisor_id else []
        report = reports[0] if reports else None
        return PipelineSummary(
            student_id=student.id,
            internship_status=student.internship_status,
            internship_category=student.internship_category,
            application_id=application.id if application else None,
            application_status=application.status if application else None,
            agreement_status=agreement.status if agreement else None,
            assigned_company=student.assigned_company,
            supervisor_id=student.supervisor_id,
            report_submitted=report is not None,
            overall_rating=report.overall_rating if report else None,
            recommendation=report.recommendation if report else None,
        )

    def _grading_items(self, submissions: List[Submission], tasks) -> List[GradingItem]:
        items = []
        students = {}
        for submission in submissions:
            task = tasks.get(submission.task_id)
            if task is None:
                raise NotFoundError("Task not found", {"task_id": submission.task_id})
            if submission.student_id not in students:
                students[submission.student_id] = self._require_student(submission.student_id)
            student = students[submission.student_id]
            items.append(GradingItem(submission=submission, task=task, student_id=student.id,
                                     student_name=student.name, roll_number=student.roll_number))
        return items
