# app/services/assignment_service.py - Assignments, submissions and grading
from sqlalchemy.orm import Session
from sqlalchemy import select
from decimal import Decimal
from typing import Optional, List
import logging

from app.core.db import add_unique
from app.core.exceptions import ValidationError, NotFoundError, AuthorizationError
from app.core.permissions import Capability, Principal
from app.models.assignment import Assignment, AssignmentSubmission
from app.models.base import utcnow, to_naive_utc, reference_number
from app.models.staff import Teacher
from app.models.student import Student
from app.models.user import UserRole
from app.schemas.assignment import AssignmentCreate, AssignmentUpdate, AssignmentOut
from app.services.ledger import to_money
from app.services.notification_service import NotificationService, NotificationTemplates

logger = logging.getLogger(__name__)

SUBMITTED = "Submitted"
GRADED = "Graded"

# Columns a patch may change but never clear
REQUIRED_FIELDS = {
    "title": "Title",
    "due_date": "Due date",
    "max_marks": "Max marks",
    "is_published": "Published flag",
    "allow_late_submission": "Late submission flag",
    "late_penalty_percentage": "Late penalty",
}


def submission_status(assignment: Assignment, submission: Optional[AssignmentSubmission], now=None) -> str:
    if submission is not None:
        return submission.status
    if assignment.due_date < (now or utcnow()):
        return "Overdue"
    return "Pending"


class AssignmentService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def _get(self, assignment_id: str) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if not assignment:
            raise NotFoundError("Assignment not found")
        return assignment

    def _student(self, principal: Principal) -> Student:
        student = self.db.get(Student, principal.require_student())
        if not student:
            raise NotFoundError("Student not found")
        return student

    def _teacher_for(self, principal: Principal) -> Optional[Teacher]:
        return self.db.execute(
            select(Teacher).where(Teacher.user_id == principal.user_id)
        ).scalar_one_or_none()

    def _to_out(self, assignment: Assignment, teacher_names: dict, status: Optional[str] = None) -> AssignmentOut:
        out = AssignmentOut.model_validate(assignment)
        out.teacher_name = teacher_names.get(assignment.teacher_id)
        out.submission_status = status
        return out

    def _teacher_names(self, assignments: List[Assignment]) -> dict:
        ids = {a.teacher_id for a in assignments if a.teacher_id}
        if not ids:
            return {}
        rows = self.db.execute(select(Teacher.id, Teacher.full_name).where(Teacher.id.in_(ids))).all()
        return {teacher_id: name for teacher_id, name in rows}

    def list_assignments(self, principal: Principal, form: Optional[str] = None, subject: Optional[str] = None,
                         limit: int = 50, offset: int = 0) -> List[AssignmentOut]:
        """Published assignments for a form, soonest due first"""
        student = self._student(principal) if principal.is_student else None
        if student:
            form = student.form
        if not form:
            raise ValidationError("Form is required")

        query = select(Assignment).where(Assignment.form == form, Assignment.is_published.is_(True))
        if subject:
            query = query.where(Assignment.subject == subject)
        assignments = self.db.execute(
            query.order_by(Assignment.due_date.asc()).offset(offset).limit(limit)
        ).scalars().all()

        teacher_names = self._teacher_names(assignments)
        if not student:
            return [self._to_out(a, teacher_names) for a in assignments]

        submissions = {}
        if assignments:
            rows = self.db.execute(
                select(AssignmentSubmission).where(
                    AssignmentSubmission.student_id == student.id,
                    AssignmentSubmission.assignment_id.in_([a.id for a in assignments]),
                )
            ).scalars().all()
            submissions = {s.assignment_id: s for s in rows}

        now = utcnow()
        return [
            self._to_out(a, teacher_names, submission_status(a, submissions.get(a.id), now))
            for a in assignments
        ]

    def get_assignment(self, principal: Principal, assignment_id: str) -> AssignmentOut:
        assignment = self._get(assignment_id)
        status = None
        if principal.is_student:
            submission = self.db.execute(
                select(AssignmentSubmission).where(
                    AssignmentSubmission.assignment_id == assignment.id,
                    AssignmentSubmission.student_id == principal.require_student(),
                )
            ).scalar_one_or_none()
            status = submission_status(assignment, submission)
        return self._to_out(assignment, self._teacher_names([assignment]), status)

    def create_assignment(self, principal: Principal, request: AssignmentCreate) -> Assignment:
        principal.require(Capability.MANAGE_ASSIGNMENTS, "Only teachers can create assignments")
        for value, label in ((request.title, "Title"), (request.subject, "Subject"), (request.form, "Form")):
            if not value or not value.strip():
                raise ValidationError(f"{label} is required")

        teacher = self._teacher_for(principal)

        def build() -> Assignment:
            return Assignment(
                assignment_no=reference_number("ASG"),
                title=request.title.strip(),
                subject=request.subject.strip(),
                form=request.form.strip(),
                description=request.description,
                instructions=request.instructions,
                due_date=to_naive_utc(request.due_date),
                max_marks=request.max_marks,
                target_classes_csv=",".join(request.target_classes) or None,
                file_path=request.file_path,
                assignment_type=request.assignment_type,
                is_published=True,
                allow_late_submission=request.allow_late_submission,
                late_penalty_percentage=request.late_penalty_percentage,
                teacher_id=teacher.id if teacher else None,
                created_by=principal.user_id,
            )

        assignment = add_unique(self.db, build, "Assignment")
        logger.info(f"Assignment {assignment.assignment_no} created for {assignment.form} by {principal.user_id}")

        recipients = []
        for class_name in request.target_classes or [None]:
            recipients.extend(self.notifications.student_user_ids(form=assignment.form, class_name=class_name))
        self.notifications.send_template_bulk(
            dict.fromkeys(recipients),
            NotificationTemplates.new_assignment(assignment.title, assignment.subject, assignment.due_date),
            created_by=principal.user_id,
        )
        return assignment

    def update_assignment(self, principal: Principal, assignment_id: str, patch: AssignmentUpdate) -> Assignment:
        principal.require(Capability.MANAGE_ASSIGNMENTS)
        assignment = self._get(assignment_id)

        is_author = assignment.created_by == principal.user_id
        if not is_author and principal.role not in (UserRole.PRINCIPAL, UserRole.DEPUTY_PRINCIPAL):
            raise AuthorizationError("Only the author or the principal can edit this assignment")

        changes = patch.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if field in REQUIRED_FIELDS and value is None:
                raise ValidationError(f"{REQUIRED_FIELDS[field]} cannot be empty")
        if "title" in changes and not changes["title"].strip():
            raise ValidationError("Title cannot be empty")
        if "due_date" in changes:
            changes["due_date"] = to_naive_utc(changes["due_date"])

        for field, value in changes.items():
            setattr(assignment, field, value)

        self.db.commit()
        return assignment

    def submit_assignment(self, principal: Principal, assignment_id: str,
                          submission_text: Optional[str] = None,
                          submission_path: Optional[str] = None) -> AssignmentSubmission:
        student = self._student(principal)
        assignment = self._get(assignment_id)
        if not assignment.is_published:
            raise NotFoundError("Assignment not found")
        if assignment.form != student.form:
            raise AuthorizationError("This assignment is not for your form")
        if not (submission_text and submission_text.strip()) and not (submission_path and submission_path.strip()):
            raise ValidationError("Submission text or file is required")

        now = utcnow()
        is_late = now > assignment.due_date
        if is_late and not assignment.allow_late_submission:
            raise ValidationError("The submission deadline has passed")

        submission = self.db.execute(
            select(AssignmentSubmission).where(
                AssignmentSubmission.assignment_id == assignment.id,
                AssignmentSubmission.student_id == student.id,
            )
        ).scalar_one_or_none()

        if submission is None:
            submission = AssignmentSubmission(assignment_id=assignment.id, student_id=student.id)
            self.db.add(submission)
        elif submission.status == GRADED:
            raise ValidationError("This assignment has already been graded")

        submission.submission_text = submission_text
        submission.submission_path = submission_path
        submission.submission_date = now
        submission.is_late = is_late
        submission.status = SUBMITTED
        self.db.commit()

        logger.info(f"Assignment {assignment.assignment_no} submitted by student {student.student_no}")
        return submission

    def list_submissions(self, principal: Principal, assignment_id: str) -> List[AssignmentSubmission]:
        principal.require(Capability.MANAGE_ASSIGNMENTS)
        self._get(assignment_id)
        return list(self.db.execute(
            select(AssignmentSubmission)
            .where(AssignmentSubmission.assignment_id == assignment_id)
            .order_by(AssignmentSubmission.submission_date.asc())
        ).scalars().all())

    def grade_submission(self, principal: Principal, submission_id: str, marks,
                         comments: Optional[str] = None) -> AssignmentSubmission:
        principal.require(Capability.GRADE_ASSIGNMENTS, "Only teachers can grade submissions")
        submission = self.db.get(AssignmentSubmission, submission_id)
        if not submission:
            raise NotFoundError("Submission not found")
        assignment = submission.assignment

        marks = to_money(marks)
        if marks < 0 or marks > assignment.max_marks:
            raise ValidationError(f"Marks must be between 0 and {assignment.max_marks}")

        penalty = Decimal("0.00")
        if submission.is_late and assignment.late_penalty_percentage:
            penalty = to_money(marks * to_money(assignment.late_penalty_percentage) / 100)

        submission.obtained_marks = marks
        submission.late_penalty_applied = penalty
        submission.final_marks = marks - penalty
        submission.teacher_comments = comments
        submission.graded_by = principal.user_id
        submission.graded_date = utcnow()
        submission.status = GRADED
        self.db.commit()

        logger.info(f"Submission {submission.id} graded {submission.final_marks}/{assignment.max_marks}")
        return submission
