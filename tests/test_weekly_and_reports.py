import pytest

from internhub.db.models import CompletionStatus, Recommendation, WeeklyUpdateStatus
from internhub.errors import AuthorizationError, InvalidStateError, ValidationError

WEEK = {
    "week_number": 1,
    "work_summary": "Shipped the landing page",
    "platform_links": [{"platform": "Upwork", "url": "https://upwork.example.com/job/1"}],
    "hours_worked": 12.5,
    "technologies_used": "React",
}

EVALUATION = {
    "summary": "Consistent, careful work",
    "overall_rating": 85,
    "recommendation": "good",
    "scores": {"technical": 80, "communication": 90},
    "completion_status": "completed",
}


# =============================================================================
# WEEKLY UPDATES
# =============================================================================

class TestWeeklyUpdates:

    def test_freelancer_submits(self, manager, build):
        student, _ = build.placed("freelancer")
        update = manager.weekly.submit(student.id, WEEK)
        assert update.status == WeeklyUpdateStatus.SUBMITTED
        assert update.platform_links[0].platform == "Upwork"
        assert update.hours_worked == 12.5

    def test_non_freelancer_rejected(self, manager, build):
        student, _ = build.placed()
        with pytest.raises(AuthorizationError):
            manager.weekly.submit(student.id, WEEK)

    def test_requires_assignment(self, manager, build):
        student, _ = build.verified("freelancer")
        with pytest.raises(InvalidStateError):
            manager.weekly.submit(student.id, WEEK)

    def test_week_number_starts_at_one(self, manager, build):
        student, _ = build.placed("freelancer")
        with pytest.raises(ValidationError):
            manager.weekly.submit(student.id, {**WEEK, "week_number": 0})

    def test_review_then_resubmit_clears_review(self, manager, build):
        student, supervisor = build.placed("freelancer")
        update = manager.weekly.submit(student.id, WEEK)
        reviewed = manager.weekly.review(update.id, "Good progress", supervisor.id)
        assert reviewed.status == WeeklyUpdateStatus.REVIEWED
        assert reviewed.faculty_reviewed_by == supervisor.id

        again = manager.weekly.submit(student.id, {**WEEK, "work_summary": "Revised summary"})
        assert again.id == update.id
        assert again.status == WeeklyUpdateStatus.SUBMITTED
        assert again.faculty_remarks is None
        assert len(manager.weekly.list_for_student(student.id)) == 1

    def test_review_by_other_faculty(self, manager, build):
        student, _ = build.placed("freelancer")
        update = manager.weekly.submit(student.id, WEEK)
        with pytest.raises(AuthorizationError):
            manager.weekly.review(update.id, "Not mine", build.faculty().id)

    def test_updates_listed_by_week(self, manager, build):
        student, _ = build.placed("freelancer")
        manager.weekly.submit(student.id, {**WEEK, "week_number": 2})
        manager.weekly.submit(student.id, WEEK)
        assert [u.week_number for u in manager.weekly.list_for_student(student.id)] == [1, 2]


# =============================================================================
# REPORTS
# =============================================================================

class TestReports:

    def test_supervisor_writes_report(self, manager, build):
        student, supervisor = build.placed()
        report = manager.reports.create(student.id, supervisor.id, EVALUATION)
        assert report.overall_rating == 85
        assert report.recommendation == Recommendation.GOOD
        assert report.scores.communication == 90
        assert report.completion_status == CompletionStatus.COMPLETED

    def test_update_keeps_unset_optional_fields(self, manager, build):
        student, supervisor = build.placed()
        first = manager.reports.create(student.id, supervisor.id, EVALUATION)
        second = manager.reports.create(student.id, supervisor.id, {
            "summary": "Revised", "overall_rating": 90, "recommendation": "excellent",
        })
        assert second.id == first.id
        assert second.summary == "Revised"
        assert second.scores.technical == 80
        assert second.completion_status == CompletionStatus.COMPLETED
        assert len(manager.reports.get_for_student(student.id)) == 1

    def test_only_current_supervisor(self, manager, build):
        student, supervisor = build.placed()
        with pytest.raises(AuthorizationError):
            manager.reports.create(student.id, build.faculty().id, EVALUATION)

        replacement = build.faculty()
        manager.accounts.change_supervisor(student.id, replacement.id)
        with pytest.raises(AuthorizationError):
            manager.reports.create(student.id, supervisor.id, EVALUATION)
        manager.reports.create(student.id, replacement.id, EVALUATION)
        assert [r.created_by for r in manager.reports.list_by_author(replacement.id)] == [replacement.id]

    def test_requires_assigned_internship(self, manager, build):
        student, _ = build.verified()
        supervisor = build.faculty()
        manager.accounts.change_supervisor(student.id, supervisor.id)
        with pytest.raises(InvalidStateError):
            manager.reports.create(student.id, supervisor.id, EVALUATION)

    @pytest.mark.parametrize("rating", [-5, 101])
    def test_rating_range(self, manager, build, rating):
        student, supervisor = build.placed()
        with pytest.raises(ValidationError):
            manager.reports.create(student.id, supervisor.id, {**EVALUATION, "overall_rating": rating})
