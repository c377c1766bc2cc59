# tests/test_assignments.py - Assignment creation, submission status and grading
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from app.core.exceptions import AuthorizationError, ValidationError
from app.models import Notification, UserRole
from app.models.base import utcnow
from app.schemas.assignment import AssignmentCreate, AssignmentUpdate
from app.services.assignment_service import AssignmentService
from tests.conftest import auth_headers, principal_for


def create(service, principal, **overrides):
    data = {
        "title": "Algebra revision",
        "subject": "Mathematics",
        "form": "Form 1",
        "due_date": utcnow() + timedelta(days=3),
    }
    data.update(overrides)
    return service.create_assignment(principal, AssignmentCreate(**data))


class TestAssignments:
    def test_create_notifies_students_of_the_form(self, db, factory, teacher_principal):
        in_form = factory.student(form="Form 1")
        other_form = factory.student(form="Form 4")
        assignment = create(AssignmentService(db), teacher_principal)

        assert assignment.assignment_no.startswith("ASG")
        recipients = db.execute(select(Notification.recipient_id)).scalars().all()
        assert recipients == [in_form.user_id]
        assert other_form.user_id not in recipients

    def test_student_cannot_create(self, db, student_principal):
        with pytest.raises(AuthorizationError):
            create(AssignmentService(db), student_principal)

    def test_colliding_assignment_number_is_regenerated(self, db, teacher_principal, monkeypatch):
        numbers = iter(["ASG1", "ASG1", "ASG2"])
        monkeypatch.setattr("app.services.assignment_service.reference_number", lambda prefix: next(numbers))
        service = AssignmentService(db)

        assert create(service, teacher_principal).assignment_no == "ASG1"
        second = create(service, teacher_principal, title="Geometry")
        assert second.assignment_no == "ASG2"
        assert second.teacher_id is not None

    def test_student_list_shows_submission_status(self, db, student, student_principal, teacher_principal):
        service = AssignmentService(db)
        open_one = create(service, teacher_principal, title="Open")
        create(service, teacher_principal, title="Missed", due_date=utcnow() - timedelta(days=1))

        listing = {a.title: a for a in service.list_assignments(student_principal)}
        assert listing["Open"].submission_status == "Pending"
        assert listing["Missed"].submission_status == "Overdue"
        assert listing["Open"].teacher_name == "John Otieno"

        service.submit_assignment(student_principal, open_one.id, submission_text="x = 2")
        assert service.get_assignment(student_principal, open_one.id).submission_status == "Submitted"

    def test_late_submission_refused_unless_allowed(self, db, student, student_principal, teacher_principal):
        service = AssignmentService(db)
        closed = create(service, teacher_principal, due_date=utcnow() - timedelta(hours=1))
        with pytest.raises(ValidationError):
            service.submit_assignment(student_principal, closed.id, submission_text="late")

        lenient = create(service, teacher_principal, due_date=utcnow() - timedelta(hours=1),
                         allow_late_submission=True, late_penalty_percentage=Decimal("10"))
        submission = service.submit_assignment(student_principal, lenient.id, submission_text="late")
        assert submission.is_late is True

        graded = service.grade_submission(teacher_principal, submission.id, Decimal("80"), "Good")
        assert graded.status == "Graded"
        assert graded.late_penalty_applied == Decimal("8.00")
        assert graded.final_marks == Decimal("72.00")

        with pytest.raises(ValidationError):
            service.submit_assignment(student_principal, lenient.id, submission_text="again")

    def test_marks_must_fit_max_marks(self, db, student, student_principal, teacher_principal):
        service = AssignmentService(db)
        assignment = create(service, teacher_principal, max_marks=50)
        submission = service.submit_assignment(student_principal, assignment.id, submission_path="/uploads/a.pdf")
        with pytest.raises(ValidationError):
            service.grade_submission(teacher_principal, submission.id, Decimal("51"))

    def test_empty_submission_refused(self, db, student, student_principal, teacher_principal):
        service = AssignmentService(db)
        assignment = create(service, teacher_principal)
        with pytest.raises(ValidationError):
            service.submit_assignment(student_principal, assignment.id, submission_text="  ")

    def test_only_author_edits(self, db, factory, teacher_principal):
        service = AssignmentService(db)
        assignment = create(service, teacher_principal)
        other_teacher = principal_for(factory.teacher(full_name="Other Teacher"), UserRole.TEACHER)

        with pytest.raises(AuthorizationError):
            service.update_assignment(other_teacher, assignment.id, AssignmentUpdate(title="Changed"))
        updated = service.update_assignment(teacher_principal, assignment.id, AssignmentUpdate(title="Changed"))
        assert updated.title == "Changed"

    def test_required_fields_cannot_be_cleared(self, db, teacher_principal):
        service = AssignmentService(db)
        assignment = create(service, teacher_principal)
        due = assignment.due_date

        for field in ("due_date", "max_marks", "is_published", "title"):
            with pytest.raises(ValidationError):
                service.update_assignment(teacher_principal, assignment.id, AssignmentUpdate(**{field: None}))

        with pytest.raises(ValidationError):
            service.update_assignment(teacher_principal, assignment.id,
                                      AssignmentUpdate(description="Read chapter 4", due_date=None))
        db.refresh(assignment)
        assert assignment.due_date == due
        assert assignment.description is None


class TestAssignmentsApi:
    def test_teacher_creates_and_student_submits(self, client, student, teacher):
        teacher_headers = auth_headers(teacher, UserRole.TEACHER)
        created = client.post("/api/assignments/", headers=teacher_headers, json={
            "title": "Essay", "subject": "English", "form": student.form,
            "due_date": (utcnow() + timedelta(days=2)).isoformat(),
        })
        assert created.status_code == 201
        assignment_id = created.json()["id"]

        student_headers = auth_headers(student, UserRole.STUDENT)
        submitted = client.post(f"/api/assignments/{assignment_id}/submit", headers=student_headers,
                                json={"submission_text": "My essay"})
        assert submitted.status_code == 200

        submissions = client.get(f"/api/assignments/{assignment_id}/submissions", headers=teacher_headers)
        assert [s["student_id"] for s in submissions.json()] == [student.id]

        graded = client.post(f"/api/assignments/submissions/{submissions.json()[0]['id']}/grade",
                             headers=teacher_headers, json={"marks": "70"})
        assert graded.status_code == 200
        assert graded.json()["final_marks"] == "70.00"

    def test_null_due_date_patch_is_a_bad_request(self, client, teacher):
        headers = auth_headers(teacher, UserRole.TEACHER)
        created = client.post("/api/assignments/", headers=headers, json={
            "title": "Map work", "subject": "Geography", "form": "Form 2",
            "due_date": (utcnow() + timedelta(days=2)).isoformat(),
        })
        assignment_id = created.json()["id"]

        response = client.patch(f"/api/assignments/{assignment_id}", headers=headers, json={"due_date": None})
        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"
        assert client.get(f"/api/assignments/{assignment_id}", headers=headers).json()["due_date"]
