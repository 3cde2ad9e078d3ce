"""
Student and staff accounts.

Passwords are hashed explicitly at the two write sites, account creation
and password reset; nothing hashes implicitly on save. Reset tokens and
sessions are handled by the identity layer in front of this package.

Students sign in with their roll number and staff with their email. An
email address belongs to at most one account across both tables.
"""

from typing import Any, Dict, Optional, Union

import structlog
from werkzeug.security import check_password_hash, generate_password_hash

from ..db.models import Admin, AdminRole, Student
from ..errors import AuthorizationError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..notifications import NotificationType
from .base import Component
from .models import ChangeSupervisorRequest, CreateAdminRequest, RegisterStudentRequest, parse_request

logger = structlog.get_logger(__name__)


class AccountService(Component):

    def hash_password(self, password: str) -> str:
        if len(password) < self.settings.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.settings.min_password_length} characters",
                {"min_length": self.settings.min_password_length}
            )
        return generate_password_hash(password, method=self.settings.password_hash_method)

    def _ensure_email_free(self, email: str):
        if self.store.get_student_by_email(email) or self.store.get_admin_by_email(email):
            raise ConflictError("An account with this email already exists", {"email": email})

    def register_student(self, payload: Union[RegisterStudentRequest, Dict[str, Any]]) -> Student:
        request = parse_request(RegisterStudentRequest, payload)
        password_hash = self.hash_password(request.password)
        with self.store.transaction():
            self._ensure_email_free(request.email)
            student = self.store.insert_student({
                'roll_number': request.roll_number,
                'name': request.name,
                'email': request.email,
                'degree': request.degree,
                'session': request.session,
                'password_hash': password_hash,
            })
        logger.info("Student registered", student_id=student.id, roll_number=student.roll_number)
        self._notify(NotificationType.ACCOUNT_CREATED, student_id=student.id, recipient_id=student.id,
                     email=student.email)
        return student

    def create_admin(self, payload: Union[CreateAdminRequest, Dict[str, Any]]) -> Admin:
        """
        Create a staff account.

        A company admin's company is registered as a partnered company when
        no company with that name exists yet.
        """
        request = parse_request(CreateAdminRequest, payload)
        password_hash = self.hash_password(request.password)
        company = None
        with self.store.transaction():
            self._ensure_email_free(request.email)
            if request.role == AdminRole.COMPANY_ADMIN and self.store.get_company_by_name(request.company) is None:
                company = self.store.insert_company({'name': request.company, 'email': request.email})
            admin = self.store.insert_admin({
                'name': request.name,
                'email': request.email,
                'role': request.role,
                'company': request.company,
                'password_hash': password_hash,
            })
        logger.info("Admin created", admin_id=admin.id, role=admin.role.value, company=admin.company)
        if company is not None:
            logger.info("Company registered", company_id=company.id, name=company.name, registered_by=admin.id)
            self._notify(NotificationType.COMPANY_REGISTERED, company_id=company.id, name=company.name)
        self._notify(NotificationType.ACCOUNT_CREATED, recipient_id=admin.id, email=admin.email,
                     role=admin.role.value)
        return admin

    def set_password(self, account_id: str, new_password: str) -> Union[Student, Admin]:
        """Store a new password hash for a student or admin account."""
        password_hash = self.hash_password(new_password)
        with self.store.transaction():
            if self.store.update_student(account_id, password_hash=password_hash):
                account = self.store.get_student(account_id)
            elif self.store.update_admin(account_id, password_hash=password_hash):
                account = self.store.get_admin(account_id)
            else:
                raise NotFoundError("Account not found", {"account_id": account_id})
        logger.info("Password changed", account_id=account_id)
        self._notify(NotificationType.PASSWORD_RESET, recipient_id=account_id, email=account.email)
        return account

    def verify_student_credentials(self, roll_number: str, password: str) -> Student:
        """Return the active student with this roll number and password."""
        roll_number = (roll_number or "").strip().upper()
        student = self.store.get_student_by_roll_number(roll_number)
        if student is None or not student.is_active or not check_password_hash(student.password_hash, password):
            logger.warning("Student credential check failed", roll_number=roll_number)
            raise AuthorizationError("Invalid roll number or password")
        return student

    def verify_admin_credentials(self, email: str, password: str) -> Admin:
        """Return the active staff account with this email and password."""
        email = (email or "").strip().lower()
        admin = self.store.get_admin_by_email(email)
        if admin is None or not admin.is_active or not check_password_hash(admin.password_hash, password):
            logger.warning("Admin credential check failed", email=email)
            raise AuthorizationError("Invalid email or password")
        return admin

    def change_supervisor(self, student_id: str, supervisor_id: Optional[str]) -> Student:
        """Point a student at a new faculty supervisor, or detach them with None."""
        request = parse_request(ChangeSupervisorRequest, student_id=student_id, supervisor_id=supervisor_id)
        with self.store.transaction():
            self._require_student(request.student_id)
            if request.supervisor_id is not None:
                supervisor = self.store.get_admin(request.supervisor_id)
                if supervisor is None or not supervisor.is_active or not supervisor.is_faculty:
                    raise NotFoundError("Faculty supervisor not found", {"supervisor_id": request.supervisor_id})
            self.store.update_student(request.student_id, supervisor_id=request.supervisor_id)
            student = self.store.get_student(request.student_id)
        logger.info("Supervisor changed", student_id=student.id, supervisor_id=student.supervisor_id)
        self._notify(NotificationType.SUPERVISOR_CHANGED, student_id=student.id, recipient_id=student.supervisor_id)
        return student

    def deactivate_admin(self, admin_id: str) -> Admin:
        """
        Deactivate a staff account and detach it from everything that references it.

        Students lose the supervisor, grades and weekly reviews lose their
        grader id, and a company admin's active tasks are closed. Reports
        keep their author. Nothing is deleted.
        """
        with self.store.transaction():
            admin = self.store.get_admin(admin_id)
            if admin is None:
                raise NotFoundError("Admin not found", {"admin_id": admin_id})
            if admin.role == AdminRole.SUPER_ADMIN:
                raise AuthorizationError("Super admins cannot be deactivated", {"admin_id": admin_id})
            if not admin.is_active:
                raise InvalidStateError("Admin is already inactive", {"admin_id": admin_id})

            students = self.store.clear_supervisor(admin_id)
            grades = self.store.clear_grader(admin_id)
            reviews = self.store.clear_reviewer(admin_id)
            tasks = self.store.close_tasks_by_creator(admin_id)
            self.store.update_admin(admin_id, is_active=False)
            admin = self.store.get_admin(admin_id)

        logger.info("Admin deactivated", admin_id=admin_id, students_detached=students,
                    grades_detached=grades, reviews_detached=reviews, tasks_closed=tasks)
        self._notify(NotificationType.ACCOUNT_DEACTIVATED, recipient_id=admin_id, email=admin.email,
                     students_detached=students, tasks_closed=tasks)
        return admin
