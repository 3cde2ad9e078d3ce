from internhub.db.models import AgreementStatus, ApplicationStatus, InternshipStatus, Recommendation


class TestStudentViews:

    def test_tasks_with_own_submission(self, manager, build):
        supervisor = build.faculty()
        alice, _ = build.placed(supervisor=supervisor)
        bob, _ = build.placed(supervisor=supervisor)
        creator = build.company_admin()
        done = build.task(creator, title="Done task")
        open_task = build.task(creator, title="Open task")
        manager.tasks.submit(done.id, alice.id, "alice's work")
        manager.tasks.submit(done.id, bob.id, "bob's work")

        view = {item.task.id: item for item in manager.views.tasks_for_student(alice.id)}
        assert set(view) == {done.id, open_task.id}
        assert view[done.id].submission.content == "alice's work"
        assert view[open_task.id].submission is None

    def test_freelancer_task_view_is_empty(self, manager, build):
        student, _ = build.placed("freelancer")
        assert manager.views.tasks_for_student(student.id) == []

    def test_pipeline_summary(self, manager, build):
        student, supervisor = build.placed()
        manager.reports.create(student.id, supervisor.id, {
            "summary": "Great", "overall_rating": 92, "recommendation": "excellent",
        })
        summary = manager.views.pipeline_summary(student.id)
        assert summary.internship_status == InternshipStatus.INTERNSHIP_ASSIGNED
        assert summary.application_status == ApplicationStatus.IN_PROGRESS
        assert summary.agreement_status == AgreementStatus.VERIFIED
        assert summary.report_submitted
        assert summary.overall_rating == 92
        assert summary.recommendation == Recommendation.EXCELLENT

    def test_pipeline_summary_for_new_student(self, manager, build):
        student = build.student()
        summary = manager.views.pipeline_summary(student.id)
        assert summary.internship_status == InternshipStatus.NONE
        assert summary.application_id is None
        assert not summary.report_submitted


class TestStaffViews:

    def test_company_admin_sees_own_task_submissions(self, manager, build):
        student, _ = build.placed()
        mine = build.company_admin()
        theirs = build.company_admin()
        my_task = build.task(mine)
        their_task = build.task(theirs)
        manager.tasks.submit(my_task.id, student.id, "for mine")
        manager.tasks.submit(their_task.id, student.id, "for theirs")

        items = manager.views.submissions_for_company_admin(mine.id)
        assert [(i.task.id, i.student_id) for i in items] == [(my_task.id, student.id)]
        assert items[0].roll_number == student.roll_number

    def test_supervisor_sees_supervised_students_only(self, manager, build):
        supervisor = build.faculty()
        mine, _ = build.placed(supervisor=supervisor)
        other, _ = build.placed()
        task = build.task(build.company_admin())
        manager.tasks.submit(task.id, mine.id, "mine")
        manager.tasks.submit(task.id, other.id, "other")

        items = manager.views.submissions_for_supervisor(supervisor.id)
        assert [i.student_id for i in items] == [mine.id]
        assert [s.id for s in manager.views.students_for_supervisor(supervisor.id)] == [mine.id]

    def test_students_at_company_ignores_case(self, manager, build):
        student, _ = build.placed(company="Acme Corp")
        build.placed(company="Globex")
        assert [s.id for s in manager.views.students_at_company("acme corp")] == [student.id]
