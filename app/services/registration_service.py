# app/services/registration_service.py - Registration of students, teachers and staff
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from typing import Optional, Callable, Dict, Any
import logging

from app.core.config import settings
from app.core.exceptions import (
    PortalError,
    ValidationError,
    NotFoundError,
    ConflictError,
    INTERNAL_ERROR,
)
from app.core.permissions import Capability, Principal
from app.core.security import hash_password, PhoneNumbers
from app.models.base import utcnow
from app.models.sequence import IdSequence
from app.models.staff import Teacher, Staff
from app.models.student import Student
from app.models.user import User, UserRole
from app.schemas.common import RegistrationResult
from app.schemas.registration import (
    StudentRegistrationIn,
    TeacherRegistrationIn,
    StaffRegistrationIn,
    StudentUpdate,
)
from app.services import ledger
from app.services.fees_service import FeesService
from app.services.notification_service import NotificationService, NotificationTemplates

logger = logging.getLogger(__name__)

STUDENT_CODE = "GRS"
TEACHER_CODE = "TCH"

STAFF_POSITIONS = {
    "Principal": ("PRC", UserRole.PRINCIPAL),
    "DeputyPrincipal": ("DPR", UserRole.DEPUTY_PRINCIPAL),
    "Secretary": ("SEC", UserRole.SECRETARY),
    "Bursar": ("BUR", UserRole.BURSAR),
    "Librarian": ("LIB", UserRole.LIBRARIAN),
    "Staff": ("STF", UserRole.STAFF),
}

EMPLOYEE_TYPES = ("BOM", "NTSC")


def format_display_id(code: str, year: int, number: int) -> str:
    return f"{code}/{year}/{number:03d}"


def parse_sequence_number(display_id: str) -> Optional[int]:
    parts = (display_id or "").split("/")
    if len(parts) != 3 or not parts[2].isdigit():
        return None
    return int(parts[2])


def normalize_position(position: Optional[str]) -> Optional[str]:
    key = "".join((position or "").split()).lower()
    for name in STAFF_POSITIONS:
        if name.lower() == key:
            return name
    return None


def _required(value: Optional[str], message: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(message)
    return str(value).strip()


class RegistrationService:
    """Issues registration numbers and creates user accounts with their profiles"""

    def __init__(self, db: Session, notifications: Optional[NotificationService] = None):
        self.db = db
        self.notifications = notifications or NotificationService(db)

    # ID issuance

    def _id_column(self, code: str):
        if code == STUDENT_CODE:
            return Student.student_no
        if code == TEACHER_CODE:
            return Teacher.teacher_no
        return Staff.staff_no

    def _highest_existing(self, code: str, year: int) -> int:
        """Largest number already used under code/year, so old data keeps its sequence"""
        column = self._id_column(code)
        existing = self.db.execute(
            select(column).where(column.like(f"{code}/{year}/%"))
        ).scalars().all()
        numbers = [n for n in (parse_sequence_number(v) for v in existing) if n is not None]
        return max(numbers, default=0)

    def issue_id(self, code: str, year: Optional[int] = None) -> str:
        """
        Next display id for code/year, e.g. GRS/2026/001.

        The counter row is versioned: a concurrent issuer makes the flush
        raise StaleDataError, and the caller retries the whole registration.
        """
        year = year or utcnow().year
        prefix = f"{code}/{year}"

        sequence = self.db.get(IdSequence, prefix)
        if sequence is None:
            sequence = IdSequence(prefix=prefix, last_value=self._highest_existing(code, year))
            self.db.add(sequence)
        sequence.last_value += 1
        self.db.flush()

        return format_display_id(code, year, sequence.last_value)

    # Shared plumbing

    def _register(self, operation: str, work: Callable[[], RegistrationResult]) -> RegistrationResult:
        attempts = settings.LEDGER_MAX_RETRIES
        try:
            for attempt in range(1, attempts + 1):
                try:
                    result = work()
                    self.db.commit()
                    return result
                except (StaleDataError, IntegrityError) as e:
                    # Concurrent issuer or registration; the next attempt re-checks uniqueness
                    self.db.rollback()
                    logger.warning(f"{operation}: concurrent update (attempt {attempt}/{attempts}): {e}")
            raise ConflictError(f"{operation} conflicted with a concurrent registration, please retry")
        except PortalError as e:
            self.db.rollback()
            logger.warning(f"{operation} refused: {e.message}")
            return RegistrationResult.fail(e.message, e.error_code)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} failed: {e}", exc_info=True)
            return RegistrationResult.fail(f"{operation} failed", INTERNAL_ERROR)

    def _ensure_phone_free(self, phone_number: str) -> None:
        existing = self.db.execute(
            select(User.id).where(User.phone_number == phone_number)
        ).scalar_one_or_none()
        if existing:
            raise ConflictError("Phone number already registered")

    def _clean_phone(self, phone_number: Optional[str], message: str) -> str:
        phone_number = _required(phone_number, message)
        if not PhoneNumbers.is_valid(phone_number):
            raise ValidationError("Valid phone number is required")
        return PhoneNumbers.normalize(phone_number)

    def _create_user(self, principal: Principal, phone_number: str, password: str,
                     role: UserRole, email: Optional[str]) -> User:
        user = User(
            phone_number=phone_number,
            password_hash=hash_password(password),
            role=role.value,
            email=email,
            is_active=True,
            created_by=principal.user_id,
        )
        self.db.add(user)
        self.db.flush()
        return user

    def _welcome(self, user_id: str, generated_id: str) -> None:
        self.notifications.send_template(
            user_id,
            NotificationTemplates.registration_complete(
                f"Your registration number is {generated_id}. Please change your password after first login."
            ),
        )

    # Registration

    def register_student(self, principal: Principal, request: StudentRegistrationIn) -> RegistrationResult:
        operation = "Student registration"
        try:
            principal.require(Capability.REGISTER_USERS, "Unauthorized: Only secretary can register students")
            full_name = _required(request.full_name, "Full name is required")
            admission_no = _required(request.admission_no, "Admission number is required")
            form = _required(request.form, "Form is required")
            class_name = _required(request.class_name, "Class is required")
            parent_phone = self._clean_phone(request.parent_phone, "Parent phone number is required")
        except PortalError as e:
            logger.warning(f"{operation} refused: {e.message}")
            return RegistrationResult.fail(e.message, e.error_code)

        def work() -> RegistrationResult:
            self._ensure_phone_free(parent_phone)
            duplicate = self.db.execute(
                select(Student.id).where(Student.admission_no == admission_no)
            ).scalar_one_or_none()
            if duplicate:
                raise ConflictError("Admission number already exists")

            student_no = self.issue_id(STUDENT_CODE)
            user = self._create_user(principal, parent_phone, student_no, UserRole.STUDENT, request.email)

            student = Student(
                user_id=user.id,
                student_no=student_no,
                admission_no=admission_no,
                full_name=full_name,
                form=form,
                class_name=class_name,
                email=request.email,
                date_of_birth=request.date_of_birth,
                gender=request.gender,
                address=request.address,
                parent_phone=parent_phone,
                year=utcnow().year,
                term=ledger.current_term(),
                is_active=True,
                created_by=principal.user_id,
            )
            self.db.add(student)
            self.db.flush()

            FeesService(self.db, self.notifications).get_or_create_account(student.id)

            return RegistrationResult.ok(
                "Student registered successfully",
                generated_id=student_no,
                user_id=user.id,
                login_credentials={"phone_number": parent_phone, "password": student_no},
            )

        result = self._register(operation, work)
        if result.success:
            logger.info(f"Student registered successfully: {result.generated_id}")
            self._welcome(result.user_id, result.generated_id)
        return result

    def register_teacher(self, principal: Principal, request: TeacherRegistrationIn) -> RegistrationResult:
        operation = "Teacher registration"
        try:
            principal.require(Capability.REGISTER_USERS, "Unauthorized: Only secretary can register teachers")
            full_name = _required(request.full_name, "Full name is required")
            phone_number = self._clean_phone(request.phone_number, "Phone number is required")
            employee_type = _required(request.employee_type, "Employee type is required").upper()
            if employee_type not in EMPLOYEE_TYPES:
                raise ValidationError("Employee type must be BOM or NTSC")
            tsc_number = (request.tsc_number or "").strip() or None
            if employee_type == "NTSC" and not tsc_number:
                raise ValidationError("TSC number is required for NTSC teachers")
        except PortalError as e:
            logger.warning(f"{operation} refused: {e.message}")
            return RegistrationResult.fail(e.message, e.error_code)

        def work() -> RegistrationResult:
            self._ensure_phone_free(phone_number)
            if tsc_number:
                duplicate = self.db.execute(
                    select(Teacher.id).where(Teacher.tsc_number == tsc_number)
                ).scalar_one_or_none()
                if duplicate:
                    raise ConflictError("TSC number already exists")

            teacher_no = self.issue_id(TEACHER_CODE)
            user = self._create_user(principal, phone_number, teacher_no, UserRole.TEACHER, request.email)

            self.db.add(Teacher(
                user_id=user.id,
                teacher_no=teacher_no,
                full_name=full_name,
                employee_type=employee_type,
                tsc_number=tsc_number,
                subjects_csv=",".join(s.strip() for s in request.subjects if s.strip()) or None,
                assigned_forms_csv=",".join(f.strip() for f in request.assigned_forms if f.strip()) or None,
                qualification=request.qualification,
                department=request.department,
                email=request.email,
                phone_number=phone_number,
                is_active=True,
                created_by=principal.user_id,
            ))
            self.db.flush()

            return RegistrationResult.ok(
                "Teacher registered successfully",
                generated_id=teacher_no,
                user_id=user.id,
                login_credentials={"phone_number": phone_number, "password": teacher_no},
            )

        result = self._register(operation, work)
        if result.success:
            logger.info(f"Teacher registered successfully: {result.generated_id}")
            self._welcome(result.user_id, result.generated_id)
        return result

    def register_staff(self, principal: Principal, request: StaffRegistrationIn) -> RegistrationResult:
        operation = "Staff registration"
        try:
            principal.require(Capability.REGISTER_USERS, "Unauthorized: Only secretary can register staff")
            full_name = _required(request.full_name, "Full name is required")
            phone_number = self._clean_phone(request.phone_number, "Phone number is required")
            position = normalize_position(_required(request.position, "Position is required"))
            if position is None:
                raise ValidationError(f"Position must be one of: {', '.join(STAFF_POSITIONS)}")
        except PortalError as e:
            logger.warning(f"{operation} refused: {e.message}")
            return RegistrationResult.fail(e.message, e.error_code)

        code, role = STAFF_POSITIONS[position]

        def work() -> RegistrationResult:
            self._ensure_phone_free(phone_number)
            staff_no = self.issue_id(code)
            user = self._create_user(principal, phone_number, staff_no, role, request.email)

            self.db.add(Staff(
                user_id=user.id,
                staff_no=staff_no,
                full_name=full_name,
                position=position,
                department=request.department,
                email=request.email,
                phone_number=phone_number,
                is_active=True,
                created_by=principal.user_id,
            ))
            self.db.flush()

            return RegistrationResult.ok(
                "Staff registered successfully",
                generated_id=staff_no,
                user_id=user.id,
                login_credentials={"phone_number": phone_number, "password": staff_no},
            )

        result = self._register(operation, work)
        if result.success:
            logger.info(f"Staff registered successfully: {result.generated_id} ({position})")
            self._welcome(result.user_id, result.generated_id)
        return result

    # Student records

    def list_students(self, principal: Principal, form: Optional[str] = None, class_name: Optional[str] = None,
                      limit: int = 50, offset: int = 0) -> Dict[str, Any]:
        principal.require(Capability.MANAGE_STUDENTS)
        filters = [Student.is_active.is_(True)]
        if form:
            filters.append(Student.form == form)
        if class_name:
            filters.append(Student.class_name == class_name)

        total = self.db.execute(select(func.count(Student.id)).where(*filters)).scalar_one()
        students = self.db.execute(
            select(Student)
            .where(*filters)
            .order_by(Student.created_at.desc(), Student.student_no.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()

        return {
            "students": list(students),
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_next": offset + limit < total,
        }

    def get_student(self, principal: Principal, student_id: str) -> Student:
        principal.require_student_access(student_id, Capability.MANAGE_STUDENTS)
        student = self.db.get(Student, student_id)
        if not student:
            raise NotFoundError("Student not found")
        return student

    def update_student(self, principal: Principal, student_no: str, patch: StudentUpdate) -> Student:
        principal.require(Capability.MANAGE_STUDENTS)
        student = self.db.execute(
            select(Student).where(Student.student_no == student_no)
        ).scalar_one_or_none()
        if not student:
            raise NotFoundError("Student not found")

        changes = patch.model_dump(exclude_unset=True)
        for field in ("full_name", "form", "class_name"):
            if field in changes and (changes[field] is None or not str(changes[field]).strip()):
                raise ValidationError(f"{field.replace('_', ' ').capitalize()} cannot be empty")
        for field, value in changes.items():
            setattr(student, field, value.strip() if isinstance(value, str) else value)

        self.db.commit()
        logger.info(f"Student {student_no} updated by {principal.user_id}: {sorted(changes)}")
        return student
