import pytest

from internhub.db.models import Admin, AdminRole, Student, TaskStatus
from internhub.errors import AuthorizationError, ConflictError, InvalidStateError, NotFoundError, ValidationError
from internhub.notifications import NotificationType, get_notification_subject

from .conftest import PASSWORD


class TestRegistration:

    def test_register_student_hashes_password(self, manager, build):
        student = build.student(roll_number="fa21-bcs-042", email="Mixed.Case@Example.edu")
        assert student.roll_number == "FA21-BCS-042"
        assert student.email == "mixed.case@example.edu"
        assert student.password_hash != PASSWORD
        assert student.password_hash.startswith("pbkdf2:sha256")
        assert "password_hash" not in student.public_dict()

    def test_duplicate_email(self, manager, build):
        build.student(email="dup@example.edu")
        with pytest.raises(ConflictError) as exc:
            build.student(email="dup@example.edu")
        assert exc.value.to_dict() == {
            "error": "conflict",
            "message": "An account with this email already exists",
            "details": {"email": "dup@example.edu"},
        }

    def test_staff_email_already_used_by_student(self, manager, build):
        build.student(email="shared@example.edu")
        with pytest.raises(ConflictError):
            build.faculty(email="Shared@Example.edu", password="faculty-pass-1")
        assert manager.store.get_admin_by_email("shared@example.edu") is None

    def test_student_email_already_used_by_staff(self, manager, build):
        faculty = build.faculty(email="shared@example.edu")
        with pytest.raises(ConflictError):
            build.student(email="shared@example.edu")
        assert manager.accounts.verify_admin_credentials("shared@example.edu", PASSWORD).id == faculty.id

    def test_company_admin_registers_company(self, manager, build):
        build.company_admin(company="Initech")
        build.company_admin(company="INITECH")
        assert [c.name for c in manager.companies.list_partnered()] == ["Initech"]

    def test_bad_roll_number(self, manager, build):
        with pytest.raises(ValidationError):
            build.student(roll_number="not-a-roll")

    def test_short_password(self, manager, build):
        with pytest.raises(ValidationError):
            build.student(password="short")

    def test_company_admin_needs_company(self, manager, build):
        with pytest.raises(ValidationError):
            build.company_admin(company=None)

    def test_faculty_company_is_dropped(self, manager, build):
        faculty = build.faculty(company="Acme")
        assert faculty.role == AdminRole.ADMIN
        assert faculty.company is None


class TestCredentials:

    def test_student_signs_in_with_roll_number(self, manager, build):
        student = build.student()
        signed_in = manager.accounts.verify_student_credentials(student.roll_number.lower(), PASSWORD)
        assert isinstance(signed_in, Student)
        assert signed_in.id == student.id

    def test_admin_signs_in_with_email(self, manager, build):
        faculty = build.faculty()
        signed_in = manager.accounts.verify_admin_credentials(faculty.email.upper(), PASSWORD)
        assert isinstance(signed_in, Admin)
        assert signed_in.id == faculty.id

    def test_logins_do_not_cross_tables(self, manager, build):
        student = build.student()
        faculty = build.faculty()
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_admin_credentials(student.email, PASSWORD)
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_student_credentials(faculty.email, PASSWORD)

    def test_wrong_password(self, manager, build):
        student = build.student()
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_student_credentials(student.roll_number, "wrong-password")

    def test_unknown_account(self, manager):
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_admin_credentials("nobody@example.edu", PASSWORD)
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_student_credentials("FA21-BCS-999", PASSWORD)

    def test_set_password(self, manager, build):
        student = build.student()
        manager.accounts.set_password(student.id, "a-brand-new-secret")
        assert manager.accounts.verify_student_credentials(student.roll_number, "a-brand-new-secret").id == student.id
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_student_credentials(student.roll_number, PASSWORD)

    def test_set_password_unknown_account(self, manager):
        with pytest.raises(NotFoundError):
            manager.accounts.set_password("STU_missing", "long-enough-secret")


class TestSupervisorAdministration:

    def test_change_supervisor(self, manager, build):
        student, _ = build.placed()
        replacement = build.faculty()
        assert manager.accounts.change_supervisor(student.id, replacement.id).supervisor_id == replacement.id
        assert manager.accounts.change_supervisor(student.id, None).supervisor_id is None

    def test_change_supervisor_needs_student_id(self, manager, build):
        faculty = build.faculty()
        with pytest.raises(ValidationError) as exc:
            manager.accounts.change_supervisor("", faculty.id)
        assert exc.value.code == "validation_error"
        assert "student_id" in exc.value.message

    def test_company_admin_cannot_supervise(self, manager, build):
        student, _ = build.placed()
        with pytest.raises(NotFoundError):
            manager.accounts.change_supervisor(student.id, build.company_admin().id)

    def test_deactivate_faculty_detaches_references(self, manager, build):
        student, supervisor = build.placed()
        creator = build.company_admin()
        task = build.task(creator)
        submission = manager.tasks.submit(task.id, student.id, "work")
        manager.tasks.grade_by_faculty(submission.id, 75, None, supervisor.id)
        manager.reports.create(student.id, supervisor.id, {
            "summary": "ok", "overall_rating": 70, "recommendation": "satisfactory",
        })

        admin = manager.accounts.deactivate_admin(supervisor.id)
        assert not admin.is_active
        assert manager.store.get_student(student.id).supervisor_id is None
        graded = manager.store.get_submission(submission.id)
        assert graded.faculty_grade.graded_by is None
        assert graded.faculty_grade.marks == 75
        assert manager.store.get_report(student.id, supervisor.id) is not None
        with pytest.raises(AuthorizationError):
            manager.accounts.verify_admin_credentials(supervisor.email, PASSWORD)

    def test_deactivate_company_admin_closes_tasks(self, manager, build):
        creator = build.company_admin()
        task = build.task(creator)
        manager.accounts.deactivate_admin(creator.id)
        assert manager.store.get_task(task.id).status == TaskStatus.CLOSED
        with pytest.raises(InvalidStateError):
            manager.accounts.deactivate_admin(creator.id)

    def test_deactivation_is_announced(self, manager, hub, build):
        creator = build.company_admin()
        build.task(creator)
        seen = []
        hub.subscribe(seen.append, NotificationType.ACCOUNT_DEACTIVATED)
        manager.accounts.deactivate_admin(creator.id)
        assert len(seen) == 1
        assert seen[0].recipient_id == creator.id
        assert seen[0].payload["tasks_closed"] == 1
        assert seen[0].subject == get_notification_subject(NotificationType.ACCOUNT_DEACTIVATED)

    def test_super_admin_stays(self, manager, build):
        boss = build.faculty(role="super_admin")
        with pytest.raises(AuthorizationError):
            manager.accounts.deactivate_admin(boss.id)
