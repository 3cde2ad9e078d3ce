from datetime import datetime, timedelta, timezone

import pytest

from internhub.db.models import (
    AgreementStatus, ApplicationStatus, CompletionStatus, SubmissionStatus, WeeklyUpdateStatus
)
from internhub.errors import ConflictError


def _student(store, n=1):
    return store.insert_student({
        "roll_number": f"FA21-BCS-{n:03d}", "name": f"S{n}", "email": f"s{n}@example.edu",
        "degree": "BCS", "session": "FA21", "password_hash": "x",
    })


def _application(store, student_id, **overrides):
    record = {
        "student_id": student_id, "company_name": "Acme", "position": "Intern",
        "internship_type": "summer", "duration": "8 weeks",
    }
    record.update(overrides)
    return store.insert_application(record)


def _task(store, company="Acme"):
    return store.insert_task({
        "title": "T", "description": "D", "deadline": datetime.now(timezone.utc) + timedelta(days=1),
        "max_marks": 100, "created_by": "ADM_1", "company": company,
    })


# =============================================================================
# UNIQUENESS
# =============================================================================

class TestNaturalKeys:

    def test_duplicate_email_is_conflict(self, store):
        _student(store, 1)
        with pytest.raises(ConflictError):
            store.insert_student({
                "roll_number": "FA21-BCS-777", "name": "Dup", "email": "s1@example.edu",
                "degree": "BCS", "session": "FA21", "password_hash": "x",
            })

    def test_one_active_application_per_student(self, store):
        student = _student(store)
        _application(store, student.id)
        with pytest.raises(ConflictError) as exc:
            _application(store, student.id)
        assert "already" in exc.value.message

    def test_rejected_applications_do_not_count(self, store):
        student = _student(store)
        first = _application(store, student.id)
        assert store.set_application_status(first.id, ApplicationStatus.PENDING, ApplicationStatus.REJECTED)
        second = _application(store, student.id)
        assert second.id != first.id
        assert store.active_application(student.id).id == second.id

    def test_resubmit_only_touches_rejected_rows(self, store):
        student = _student(store)
        application = _application(store, student.id)
        assert not store.resubmit_application(application.id, {"position": "Other"})
        store.set_application_status(application.id, "pending", "rejected", "Missing documents")
        assert store.resubmit_application(application.id, {"position": "Other"})
        reloaded = store.get_application(application.id)
        assert reloaded.status == ApplicationStatus.PENDING
        assert reloaded.position == "Other"
        assert reloaded.feedback is None


# =============================================================================
# COMPARE-AND-SET
# =============================================================================

class TestConditionalWrites:

    def test_transition_student_requires_matching_source(self, store):
        student = _student(store)
        assert not store.transition_student(student.id, ["approved"], "agreement_submitted")
        assert store.transition_student(student.id, ["none"], "submitted")
        assert store.get_student(student.id).internship_status.value == "submitted"

    def test_transition_with_no_sources_is_noop(self, store):
        student = _student(store)
        assert not store.transition_student(student.id, [], "submitted")

    def test_application_status_cas(self, store):
        student = _student(store)
        application = _application(store, student.id)
        assert store.set_application_status(application.id, "pending", "approved")
        assert not store.set_application_status(application.id, "pending", "rejected")

    def test_unknown_column_rejected(self, store):
        student = _student(store)
        with pytest.raises(ValueError):
            store.update_student(student.id, roll_number="XX")


# =============================================================================
# UPSERTS
# =============================================================================

class TestUpserts:

    def test_agreement_upsert_keeps_id_and_stops_at_verified(self, store):
        student = _student(store)
        application = _application(store, student.id)
        record = {
            "student_id": student.id, "application_id": application.id, "sourcing_type": "University Assigned",
            "phone_number": "1", "personal_email": "p@example.org", "home_address": "A",
        }
        first = store.upsert_agreement(record)
        second = store.upsert_agreement({**record, "home_address": "B"})
        assert second.id == first.id
        assert second.home_address == "B"

        store.set_agreement_status(first.id, AgreementStatus.SUBMITTED, AgreementStatus.VERIFIED)
        assert store.upsert_agreement({**record, "home_address": "C"}) is None
        assert store.get_agreement(first.id).home_address == "B"

    def test_submission_upsert_preserves_grades(self, store):
        student = _student(store)
        task = _task(store)
        first = store.upsert_submission(task.id, student.id, "v1", [])
        store.write_company_grade(first.id, 80, "good", "ADM_1")

        second = store.upsert_submission(task.id, student.id, "v2", [])
        assert second.id == first.id
        assert second.content == "v2"
        assert second.company_grade.marks == 80
        assert second.status == SubmissionStatus.GRADED_BY_COMPANY
        assert store.count_submissions(task.id, student.id) == 1

    def test_grade_writes_converge_in_either_order(self, store):
        student = _student(store)
        task = _task(store)
        a = store.upsert_submission(task.id, student.id, "x", [])
        store.write_faculty_grade(a.id, 70, None, "ADM_F")
        assert store.get_submission(a.id).status == SubmissionStatus.GRADED_BY_FACULTY
        store.write_company_grade(a.id, 80, None, "ADM_C")
        stored = store._fetchone("SELECT status FROM submissions WHERE id = ?", (a.id,))
        assert stored["status"] == "fully_graded"

    def test_report_upsert_keeps_unset_optional_fields(self, store):
        student = _student(store)
        store.upsert_report(student.id, "ADM_F", "first", 70, "good",
                            scores={"technical": 90}, completion_status=CompletionStatus.COMPLETED)
        report = store.upsert_report(student.id, "ADM_F", "second", 75, "excellent")
        assert report.summary == "second"
        assert report.scores.technical == 90
        assert report.completion_status == CompletionStatus.COMPLETED
        assert len(store.list_reports(student_id=student.id)) == 1

    def test_weekly_upsert_discards_review(self, store):
        student = _student(store)
        update = store.upsert_weekly_update(student.id, 1, {"work_summary": "week one"})
        store.review_weekly_update(update.id, "looks fine", "ADM_F")
        assert store.get_weekly_update(update.id).status == WeeklyUpdateStatus.REVIEWED

        again = store.upsert_weekly_update(student.id, 1, {"work_summary": "week one, revised"})
        assert again.id == update.id
        assert again.status == WeeklyUpdateStatus.SUBMITTED
        assert again.faculty_remarks is None
        assert again.faculty_reviewed_by is None


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TestTransactions:

    def test_rollback_on_error(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                _student(store, 1)
                raise RuntimeError("boom")
        assert store.list_students() == []

    def test_nested_transaction_joins_outer(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                with store.transaction():
                    _student(store, 1)
                raise RuntimeError("boom")
        assert store.list_students() == []

    def test_commit(self, store):
        with store.transaction():
            _student(store, 1)
        assert len(store.list_students()) == 1
