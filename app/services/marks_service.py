# app/services/marks_service.py - Mark entry, approval, class rankings, trends and report cards
from sqlalchemy.orm import Session
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError
from typing import Optional, List
import logging

from app.core.exceptions import ValidationError, NotFoundError, AuthorizationError, ConflictError
from app.core.permissions import Capability, Principal
from app.models.base import utcnow
from app.models.marks import MarkEntry, GradingScheme
from app.models.staff import Teacher
from app.models.student import Student
from app.models.user import UserRole
from app.schemas.marks import (
    MarkEntryRequest,
    MarkOut,
    ClassMarkRow,
    GradeBandIn,
    GradeBandOut,
    SubjectScore,
    StudentRanking,
    ClassPerformance,
    TermPerformance,
    PerformanceTrend,
    SubjectResult,
    ReportCard,
)
from app.services import grading
from app.services.notification_service import NotificationService, NotificationTemplates

logger = logging.getLogger(__name__)

FIRST_YEAR = 2020


def _check_term(term: Optional[int]) -> None:
    if term is not None and term not in (1, 2, 3):
        raise ValidationError("Term must be 1, 2 or 3")


def _check_exam_type(exam_type: str) -> None:
    if exam_type not in grading.EXAM_TYPES:
        raise ValidationError(f"Invalid exam type. Allowed: {', '.join(grading.EXAM_TYPES)}")


def _subject_score(mark: MarkEntry, position: Optional[int] = None) -> SubjectScore:
    return SubjectScore(
        subject=mark.subject,
        total_marks=mark.total_marks,
        grade=mark.grade,
        points=mark.points,
        position=position,
    )


class MarksService:
    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    def _student(self, student_id: str) -> Student:
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def _teacher_for(self, principal: Principal) -> Optional[Teacher]:
        return self.db.execute(
            select(Teacher).where(Teacher.user_id == principal.user_id)
        ).scalar_one_or_none()

    def _class_students(self, form: str, class_name: str) -> List[Student]:
        return list(self.db.execute(
            select(Student)
            .where(Student.form == form, Student.class_name == class_name, Student.is_active.is_(True))
            .order_by(Student.admission_no)
        ).scalars().all())

    # Grading scale

    def grading_scale(self) -> List[grading.GradeBand]:
        """Active bands from the database, or the default scale when none are configured"""
        rows = self.db.execute(
            select(GradingScheme).where(GradingScheme.is_active.is_(True))
        ).scalars().all()
        if not rows:
            return list(grading.DEFAULT_SCALE)
        return grading.sorted_scale(
            grading.GradeBand(row.grade, row.min_percentage, row.max_percentage, row.points) for row in rows
        )

    def get_grading_scheme(self) -> List[GradeBandOut]:
        rows = self.db.execute(
            select(GradingScheme)
            .where(GradingScheme.is_active.is_(True))
            .order_by(GradingScheme.min_percentage.desc())
        ).scalars().all()
        return [GradeBandOut.model_validate(band) for band in (rows or grading.DEFAULT_SCALE)]

    def update_grading_scheme(self, principal: Principal, bands: List[GradeBandIn]) -> List[GradeBandOut]:
        """Replace the whole scale. Marks already entered keep the grade they were given."""
        principal.require(Capability.MANAGE_GRADING, "Only the principal or deputy can change the grading scale")
        scale = [
            grading.GradeBand(
                band.grade.strip(),
                grading.to_score(band.min_percentage),
                grading.to_score(band.max_percentage),
                band.points,
            )
            for band in bands
        ]
        error = grading.validate_scale(scale)
        if error:
            raise ValidationError(error)

        descriptions = {band.grade.strip(): band.description for band in bands}
        self.db.execute(delete(GradingScheme))
        self.db.add_all([
            GradingScheme(
                grade=band.grade,
                min_percentage=band.min_percentage,
                max_percentage=band.max_percentage,
                points=band.points,
                description=descriptions.get(band.grade),
                created_by=principal.user_id,
            )
            for band in scale
        ])
        self.db.commit()
        logger.info(f"Grading scale replaced with {len(scale)} bands by {principal.user_id}")
        return self.get_grading_scheme()

    # Entry and approval

    def _check_teacher_scope(self, principal: Principal, teacher: Optional[Teacher],
                             subject: str, student: Student) -> None:
        """Teachers with recorded subjects and forms may only mark those"""
        if principal.role != UserRole.TEACHER or teacher is None:
            return
        if teacher.subjects and subject.lower() not in {s.lower() for s in teacher.subjects}:
            raise AuthorizationError(f"You are not assigned to teach {subject}")
        if teacher.assigned_forms and student.form not in teacher.assigned_forms:
            raise AuthorizationError(f"You are not assigned to {student.form}")

    def enter_marks(self, principal: Principal, request: MarkEntryRequest) -> MarkEntry:
        """Create or update the mark for (student, subject, term, year, exam type)"""
        principal.require(Capability.ENTER_MARKS, "Only teachers can enter marks")
        subject = (request.subject or "").strip()
        if not subject:
            raise ValidationError("Subject is required")
        _check_term(request.term)
        if request.year < FIRST_YEAR or request.year > utcnow().year + 1:
            raise ValidationError("Invalid year")
        _check_exam_type(request.exam_type)

        components = []
        for value, label in ((request.opening_marks, "Opening"),
                             (request.midterm_marks, "Mid-term"),
                             (request.final_exam_marks, "Final exam")):
            if value is not None:
                if not value.is_finite() or not (0 <= value <= 100):
                    raise ValidationError(f"{label} marks must be between 0 and 100")
                value = grading.to_score(value)
            components.append(value)
        if all(value is None for value in components):
            raise ValidationError("At least one exam score is required")

        student = self._student(request.student_id)
        teacher = self._teacher_for(principal)
        self._check_teacher_scope(principal, teacher, subject, student)

        total = grading.weighted_total(*components)
        band = grading.band_for(total, self.grading_scale())

        mark = self.db.execute(
            select(MarkEntry).where(
                MarkEntry.student_id == student.id,
                MarkEntry.subject == subject,
                MarkEntry.term == request.term,
                MarkEntry.year == request.year,
                MarkEntry.exam_type == request.exam_type,
            )
        ).scalar_one_or_none()
        if mark is None:
            mark = MarkEntry(
                student_id=student.id,
                subject=subject,
                term=request.term,
                year=request.year,
                exam_type=request.exam_type,
            )
            self.db.add(mark)
        elif mark.is_approved:
            raise ValidationError("These marks have been approved and can no longer be changed")

        mark.opening_marks, mark.midterm_marks, mark.final_exam_marks = components
        mark.total_marks = total
        mark.grade = band.grade
        mark.points = band.points
        mark.teacher_comments = request.comments
        mark.entered_by = principal.user_id
        if teacher:
            mark.teacher_id = teacher.id

        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Marks for this subject were entered concurrently, please retry")

        logger.info(
            f"Marks {total} ({band.grade}) entered for student {student.student_no} in {subject}, "
            f"term {request.term} {request.year} by {principal.user_id}"
        )
        self.notifications.send_template(
            student.user_id,
            NotificationTemplates.marks_entered(subject, request.term, total),
            created_by=principal.user_id,
        )
        return mark

    def approve_marks(self, principal: Principal, mark_id: str) -> MarkEntry:
        principal.require(Capability.APPROVE_MARKS, "Only the principal or deputy can approve marks")
        mark = self.db.get(MarkEntry, mark_id)
        if not mark:
            raise NotFoundError("Mark entry not found")
        if mark.is_approved:
            return mark

        mark.is_approved = True
        mark.approved_by = principal.user_id
        mark.approval_date = utcnow()
        self.db.commit()
        logger.info(f"Marks {mark.id} approved by {principal.user_id}")
        return mark

    def approve_class_marks(self, principal: Principal, form: str, class_name: str, subject: str,
                            term: int, year: Optional[int] = None,
                            exam_type: str = grading.DEFAULT_EXAM_TYPE) -> int:
        """Approve every pending mark of a class for one subject sitting; returns how many"""
        principal.require(Capability.APPROVE_MARKS, "Only the principal or deputy can approve marks")
        _check_term(term)
        _check_exam_type(exam_type)
        year = year or utcnow().year
        student_ids = [s.id for s in self._class_students(form, class_name)]
        if not student_ids:
            return 0

        pending = self.db.execute(
            select(MarkEntry).where(
                MarkEntry.student_id.in_(student_ids),
                MarkEntry.subject == subject,
                MarkEntry.term == term,
                MarkEntry.year == year,
                MarkEntry.exam_type == exam_type,
                MarkEntry.is_approved.is_(False),
            )
        ).scalars().all()
        now = utcnow()
        for mark in pending:
            mark.is_approved = True
            mark.approved_by = principal.user_id
            mark.approval_date = now
        self.db.commit()
        logger.info(f"{len(pending)} {subject} marks approved for {form} {class_name} by {principal.user_id}")
        return len(pending)

    # Reads

    def get_student_marks(self, principal: Principal, student_id: str, year: Optional[int] = None,
                          term: Optional[int] = None) -> List[MarkEntry]:
        """A student's marks for a year; students see approved marks only"""
        principal.require_student_access(student_id, Capability.VIEW_ALL_MARKS)
        self._student(student_id)
        _check_term(term)

        query = select(MarkEntry).where(
            MarkEntry.student_id == student_id,
            MarkEntry.year == (year or utcnow().year),
        )
        if term is not None:
            query = query.where(MarkEntry.term == term)
        if principal.is_student:
            query = query.where(MarkEntry.is_approved.is_(True))
        return list(self.db.execute(
            query.order_by(MarkEntry.term, MarkEntry.subject, MarkEntry.exam_type)
        ).scalars().all())

    def get_class_marks(self, principal: Principal, form: str, class_name: str, subject: str, term: int,
                        year: Optional[int] = None,
                        exam_type: str = grading.DEFAULT_EXAM_TYPE) -> List[ClassMarkRow]:
        """Every active student of the class, with their mark for the sitting when entered"""
        principal.require(Capability.VIEW_ALL_MARKS)
        for value, label in ((form, "Form"), (class_name, "Class"), (subject, "Subject")):
            if not value or not value.strip():
                raise ValidationError(f"{label} is required")
        _check_term(term)
        _check_exam_type(exam_type)
        year = year or utcnow().year

        students = self._class_students(form, class_name)
        marks = {}
        if students:
            rows = self.db.execute(
                select(MarkEntry).where(
                    MarkEntry.student_id.in_([s.id for s in students]),
                    MarkEntry.subject == subject.strip(),
                    MarkEntry.term == term,
                    MarkEntry.year == year,
                    MarkEntry.exam_type == exam_type,
                )
            ).scalars().all()
            marks = {mark.student_id: mark for mark in rows}

        return [
            ClassMarkRow(
                student_id=student.id,
                student_name=student.full_name,
                admission_no=student.admission_no,
                mark=MarkOut.model_validate(marks[student.id]) if student.id in marks else None,
            )
            for student in students
        ]

    def _approved_marks(self, student_ids: List[str], year: int, term: Optional[int],
                        exam_type: str) -> List[MarkEntry]:
        query = select(MarkEntry).where(
            MarkEntry.student_id.in_(student_ids),
            MarkEntry.year == year,
            MarkEntry.exam_type == exam_type,
            MarkEntry.is_approved.is_(True),
        )
        if term is not None:
            query = query.where(MarkEntry.term == term)
        return list(self.db.execute(query.order_by(MarkEntry.subject)).scalars().all())

    def _class_performance(self, form: str, class_name: str, term: int, year: int,
                           exam_type: str) -> ClassPerformance:
        students = self._class_students(form, class_name)
        if not students:
            raise NotFoundError("No students found in class")

        marks = self._approved_marks([s.id for s in students], year, term, exam_type)
        scale = self.grading_scale()

        by_subject = {}
        by_student = {}
        for mark in marks:
            by_subject.setdefault(mark.subject, []).append(mark)
            by_student.setdefault(mark.student_id, []).append(mark)

        subject_positions = {}
        for subject_marks in by_subject.values():
            positions = grading.rank([m.total_marks for m in subject_marks])
            subject_positions.update({m.id: p for m, p in zip(subject_marks, positions)})

        ranked = [s for s in students if s.id in by_student]
        means = [grading.mean([m.total_marks for m in by_student[s.id]]) for s in ranked]
        rankings = [
            StudentRanking(
                student_id=student.id,
                student_name=student.full_name,
                admission_no=student.admission_no,
                total_marks=grading.to_score(sum(m.total_marks for m in by_student[student.id])),
                mean_score=mean_score,
                overall_grade=grading.grade_for(mean_score, scale),
                position=position,
                subjects=[_subject_score(m, subject_positions[m.id]) for m in by_student[student.id]],
            )
            for student, mean_score, position in zip(ranked, means, grading.rank(means))
        ]
        rankings.sort(key=lambda r: (r.position, r.admission_no))

        return ClassPerformance(
            form=form,
            class_name=class_name,
            term=term,
            year=year,
            total_students=len(students),
            class_mean=grading.mean(means),
            subject_means={
                subject: grading.mean([m.total_marks for m in subject_marks])
                for subject, subject_marks in sorted(by_subject.items())
            },
            rankings=rankings,
            generated_at=utcnow(),
        )

    def class_performance(self, principal: Principal, form: str, class_name: str, term: int,
                          year: Optional[int] = None,
                          exam_type: str = grading.DEFAULT_EXAM_TYPE) -> ClassPerformance:
        """Subject means and student rankings from approved marks"""
        principal.require(Capability.VIEW_ALL_MARKS)
        _check_term(term)
        _check_exam_type(exam_type)
        return self._class_performance(form, class_name, term, year or utcnow().year, exam_type)

    def performance_trend(self, principal: Principal, student_id: str, year: Optional[int] = None,
                          exam_type: str = grading.DEFAULT_EXAM_TYPE) -> PerformanceTrend:
        principal.require_student_access(student_id, Capability.VIEW_ALL_MARKS)
        self._student(student_id)
        _check_exam_type(exam_type)
        year = year or utcnow().year

        by_term = {}
        for mark in self._approved_marks([student_id], year, None, exam_type):
            by_term.setdefault(mark.term, []).append(mark)

        terms = [
            TermPerformance(
                term=term,
                mean_score=grading.mean([m.total_marks for m in term_marks]),
                subject_count=len(term_marks),
                subjects=[_subject_score(m) for m in term_marks],
            )
            for term, term_marks in sorted(by_term.items())
        ]
        result = PerformanceTrend(student_id=student_id, year=year, terms=terms)
        if len(terms) > 1:
            first, last = terms[0].mean_score, terms[-1].mean_score
            result.overall_trend = grading.trend(first, last)
            result.improvement_percentage = grading.improvement_percentage(first, last)
        return result

    def report_card(self, principal: Principal, student_id: str, term: int, year: Optional[int] = None,
                    exam_type: str = grading.DEFAULT_EXAM_TYPE) -> ReportCard:
        principal.require_student_access(student_id, Capability.VIEW_ALL_MARKS)
        student = self._student(student_id)
        _check_term(term)
        _check_exam_type(exam_type)
        year = year or utcnow().year

        marks = self._approved_marks([student.id], year, term, exam_type)
        mean_score = grading.mean([m.total_marks for m in marks])
        card = ReportCard(
            student_id=student.id,
            student_no=student.student_no,
            student_name=student.full_name,
            admission_no=student.admission_no,
            form=student.form,
            class_name=student.class_name,
            term=term,
            year=year,
            subjects=[
                SubjectResult(
                    subject=m.subject,
                    opening_marks=grading.to_score(m.opening_marks),
                    midterm_marks=grading.to_score(m.midterm_marks),
                    final_exam_marks=grading.to_score(m.final_exam_marks),
                    total_marks=m.total_marks,
                    grade=m.grade,
                    points=m.points,
                    teacher_comments=m.teacher_comments or "",
                )
                for m in marks
            ],
            mean_score=mean_score,
            total_points=sum(m.points for m in marks),
            overall_grade=grading.grade_for(mean_score, self.grading_scale()) if marks else None,
            class_size=0,
            generated_at=utcnow(),
        )

        if student.is_active:
            performance = self._class_performance(student.form, student.class_name, term, year, exam_type)
            card.class_size = performance.total_students
            ranking = next((r for r in performance.rankings if r.student_id == student.id), None)
            card.class_position = ranking.position if ranking else None
        return card
