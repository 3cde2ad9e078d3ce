"""
Task / submission / grading engine.

Company admins publish tasks to the students placed at their company.
Students submit once per task (resubmission overwrites in place). Two
graders act independently on each submission: the company admin who
created the task and the student's faculty supervisor. Each grading write
touches only its own grade columns and recomputes the composite status in
the same statement from the stored sibling grade, so the two grades
converge to `fully_graded` in either order without a lost update.
"""

from typing import Any, Dict, List, Optional, Union

import structlog

from ..db.models import (
    AdminRole, Attachment, InternshipStatus, Submission, Task, TaskStatus
)
from ..errors import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from ..notifications import NotificationType
from .base import Component
from .models import (
    CreateTaskRequest, GradeRequest, SubmitTaskRequest, UpdateTaskRequest, parse_request
)

logger = structlog.get_logger(__name__)


def _same_company(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.casefold() == b.casefold()


class TaskEngine(Component):

    # =================
    # TASKS
    # =================

    def create_task(self, acting_admin_id: str,
                    payload: Union[CreateTaskRequest, Dict[str, Any]]) -> Task:
        """
        Publish a task for the acting company admin's company.

        The task stores a snapshot of the company name; a later rename of
        the admin's company does not move existing tasks.
        """
        request = parse_request(CreateTaskRequest, payload)
        admin = self._require_admin(acting_admin_id)
        if admin.role != AdminRole.COMPANY_ADMIN or not admin.company:
            raise AuthorizationError("Only company admins can create tasks", {"admin_id": acting_admin_id})

        with self.store.transaction():
            if request.assigned_to:
                student = self._require_student(request.assigned_to)
                if (student.internship_status != InternshipStatus.INTERNSHIP_ASSIGNED
                        or not _same_company(student.assigned_company, admin.company)):
                    raise ValidationError("Assigned student is not placed at this company",
                                          {"student_id": student.id, "company": admin.company})
            task = self.store.insert_task({
                'title': request.title,
                'description': request.description,
                'deadline': request.deadline,
                'max_marks': request.max_marks or self.settings.default_max_marks,
                'created_by': admin.id,
                'company': admin.company,
                'assigned_to': request.assigned_to,
            })

        logger.info("Task created", task_id=task.id, company=task.company, assigned_to=task.assigned_to)
        self._notify(NotificationType.TASK_CREATED, student_id=task.assigned_to, recipient_id=None,
                     task_id=task.id, company=task.company, title=task.title)
        return task

    def update_task(self, task_id: str, acting_admin_id: str,
                    payload: Union[UpdateTaskRequest, Dict[str, Any]]) -> Task:
        request = parse_request(UpdateTaskRequest, payload)
        fields = request.model_dump(exclude_none=True)
        with self.store.transaction():
            task = self._require_own_task(task_id, acting_admin_id)
            if fields:
                self.store.update_task(task.id, **fields)
            task = self.store.get_task(task_id)
        logger.info("Task updated", task_id=task_id, fields=sorted(fields))
        return task

    def close_task(self, task_id: str, acting_admin_id: str) -> Task:
        with self.store.transaction():
            self._require_own_task(task_id, acting_admin_id)
            self.store.update_task(task_id, status=TaskStatus.CLOSED)
            task = self.store.get_task(task_id)
        logger.info("Task closed", task_id=task_id)
        return task

    def visible_tasks(self, student_id: str) -> List[Task]:
        """Active tasks of the student's company addressed to the whole roster or to this student."""
        student = self._require_student(student_id)
        if student.is_freelancer or not student.assigned_company:
            return []
        return self.store.list_visible_tasks(student.assigned_company, student.id)

    def _require_own_task(self, task_id: str, acting_admin_id: str) -> Task:
        task = self.store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", {"task_id": task_id})
        if task.created_by != acting_admin_id:
            raise AuthorizationError("Only the task creator can change this task",
                                     {"task_id": task_id, "admin_id": acting_admin_id})
        return task

    # =================
    # SUBMISSIONS
    # =================

    def submit(self, task_id: str, student_id: str, content: str,
               attachments: Optional[List[Union[Attachment, Dict[str, Any]]]] = None) -> Submission:
        """
        Create or overwrite the student's submission for a task.

        Existing grades survive an overwrite; the status is re-derived from them.

        Raises:
            AuthorizationError: Freelancer, or the task belongs to another company
            InvalidStateError: Task is closed
            NotFoundError: Unknown task or student
        """
        request = parse_request(
            SubmitTaskRequest, content=content,
            attachments=[a.model_dump() if isinstance(a, Attachment) else a for a in attachments or []],
        )

        with self.store.transaction():
            student = self._require_student(student_id)
            if student.is_freelancer:
                raise AuthorizationError("Freelancers submit weekly updates, not tasks", {"student_id": student_id})
            task = self.store.get_task(task_id)
            if task is None:
                raise NotFoundError("Task not found", {"task_id": task_id})
            if task.status != TaskStatus.ACTIVE:
                raise InvalidStateError("Task is closed", {"task_id": task_id})
            if not _same_company(task.company, student.assigned_company):
                raise AuthorizationError(
                    f"Task company '{task.company}' does not match student company '{student.assigned_company}'",
                    {"task_company": task.company, "student_company": student.assigned_company}
                )
            if task.assigned_to and task.assigned_to != student_id:
                raise AuthorizationError("Task is assigned to another student", {"task_id": task_id})

            submission = self.store.upsert_submission(
                task_id, student_id, request.content, [a.model_dump() for a in request.attachments]
            )

        logger.info("Submission saved", submission_id=submission.id, task_id=task_id, student_id=student_id,
                    status=submission.status.value)
        self._notify(NotificationType.SUBMISSION_SAVED, student_id=student_id, recipient_id=task.created_by,
                     submission_id=submission.id, task_id=task_id)
        return submission

    # =================
    # GRADING
    # =================

    def grade_by_company(self, submission_id: str, marks: float, feedback: Optional[str],
                         acting_admin_id: str) -> Submission:
        """Record the company grade; only the creator of the task may grade it."""
        request = parse_request(GradeRequest, marks=marks, feedback=feedback)
        with self.store.transaction():
            submission, task = self._load_for_grading(submission_id, request)
            if task.created_by != acting_admin_id:
                raise AuthorizationError("Only the task creator can grade this submission",
                                         {"submission_id": submission_id, "admin_id": acting_admin_id})
            self.store.write_company_grade(submission_id, request.marks, request.feedback, acting_admin_id)
            submission = self.store.get_submission(submission_id)
        return self._graded(submission, "company", acting_admin_id)

    def grade_by_faculty(self, submission_id: str, marks: float, feedback: Optional[str],
                         acting_admin_id: str) -> Submission:
        """Record the faculty grade; only the student's supervisor of record may grade it."""
        request = parse_request(GradeRequest, marks=marks, feedback=feedback)
        with self.store.transaction():
            submission, task = self._load_for_grading(submission_id, request)
            student = self._require_student(submission.student_id)
            if not student.supervisor_id or student.supervisor_id != acting_admin_id:
                raise AuthorizationError("Only the student's faculty supervisor can grade this submission",
                                         {"submission_id": submission_id, "admin_id": acting_admin_id})
            self.store.write_faculty_grade(submission_id, request.marks, request.feedback, acting_admin_id)
            submission = self.store.get_submission(submission_id)
        return self._graded(submission, "faculty", acting_admin_id)

    def _load_for_grading(self, submission_id: str, request: GradeRequest):
        submission = self.store.get_submission(submission_id)
        if submission is None:
            raise NotFoundError("Submission not found", {"submission_id": submission_id})
        task = self.store.get_task(submission.task_id)
        if task is None:
            raise NotFoundError("Task not found", {"task_id": submission.task_id})
        if request.marks > task.max_marks:
            raise ValidationError(f"Marks must be between 0 and {task.max_marks:g}",
                                  {"marks": request.marks, "max_marks": task.max_marks})
        return submission, task

    def _graded(self, submission: Submission, side: str, grader_id: str) -> Submission:
        logger.info("Submission graded", submission_id=submission.id, side=side, grader_id=grader_id,
                    status=submission.status.value)
        self._notify(NotificationType.SUBMISSION_GRADED, student_id=submission.student_id,
                     submission_id=submission.id, side=side, status=submission.status.value,
                     graded_at=submission.updated_at.isoformat())
        return submission
