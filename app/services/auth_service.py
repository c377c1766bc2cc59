# app/services/auth_service.py - Authentication business logic
from sqlalchemy.orm import Session
from sqlalchemy import select
from typing import Optional, Dict, Any
import logging

from app.core.exceptions import (
    PortalError,
    ValidationError,
    NotFoundError,
    INVALID_CREDENTIALS,
    PROFILE_NOT_FOUND,
)
from app.core.permissions import Principal
from app.core.security import token_manager, password_manager, PhoneNumbers
from app.models.base import utcnow
from app.models.staff import Teacher, Staff
from app.models.student import Student
from app.models.user import User, UserRole
from app.schemas.auth import LoginOut, ProfileOut, TokenOut

logger = logging.getLogger(__name__)


class AuthenticationError(PortalError):
    error_code = INVALID_CREDENTIALS
    status_code = 401


class AuthService:
    """Service class for authentication operations"""

    def __init__(self, db: Session):
        self.db = db

    def _find_user(self, phone_number: str) -> Optional[User]:
        return self.db.execute(
            select(User).where(User.phone_number == PhoneNumbers.normalize(phone_number))
        ).scalar_one_or_none()

    def resolve_profile(self, user: User) -> ProfileOut:
        """Student, teacher or staff profile behind a login"""
        role = user.user_role

        if role == UserRole.STUDENT:
            student = self.db.execute(
                select(Student).where(Student.user_id == user.id)
            ).scalar_one_or_none()
            if student:
                return ProfileOut(
                    user_id=user.id,
                    role=role.value,
                    full_name=student.full_name,
                    profile_id=student.id,
                    registration_number=student.student_no,
                    phone_number=user.phone_number,
                    email=student.email or user.email,
                    extra={
                        "admission_no": student.admission_no,
                        "form": student.form,
                        "class_name": student.class_name,
                        "year": student.year,
                    },
                )
        elif role == UserRole.TEACHER:
            teacher = self.db.execute(
                select(Teacher).where(Teacher.user_id == user.id)
            ).scalar_one_or_none()
            if teacher:
                return ProfileOut(
                    user_id=user.id,
                    role=role.value,
                    full_name=teacher.full_name,
                    profile_id=teacher.id,
                    registration_number=teacher.teacher_no,
                    phone_number=user.phone_number,
                    email=teacher.email or user.email,
                    extra={
                        "employee_type": teacher.employee_type,
                        "subjects": teacher.subjects,
                        "assigned_forms": teacher.assigned_forms,
                    },
                )
        else:
            staff = self.db.execute(
                select(Staff).where(Staff.user_id == user.id)
            ).scalar_one_or_none()
            if staff:
                return ProfileOut(
                    user_id=user.id,
                    role=role.value,
                    full_name=staff.full_name,
                    profile_id=staff.id,
                    registration_number=staff.staff_no,
                    phone_number=user.phone_number,
                    email=staff.email or user.email,
                    extra={"position": staff.position, "department": staff.department},
                )

        raise NotFoundError("User profile not found", PROFILE_NOT_FOUND)

    def token_claims(self, user: User, profile: ProfileOut) -> Dict[str, Any]:
        claims = {"role": user.role, "name": profile.full_name}
        if user.role == UserRole.STUDENT.value:
            claims["student_id"] = profile.profile_id
        return claims

    def login(self, phone_number: str, password: str) -> LoginOut:
        """
        Authenticate with phone number and password

        Raises:
            AuthenticationError: unknown phone, wrong password or inactive account
            NotFoundError: the user has no student/teacher/staff profile
        """
        if not phone_number or not phone_number.strip() or not password:
            raise ValidationError("Phone number and password are required")

        user = self._find_user(phone_number)
        if not user or not password_manager.verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {PhoneNumbers.normalize(phone_number)}")
            raise AuthenticationError("Invalid phone number or password")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        profile = self.resolve_profile(user)

        user.last_login = utcnow()
        self.db.commit()

        claims = self.token_claims(user, profile)
        logger.info(f"User authenticated: {user.id} ({user.role})")
        return LoginOut(
            access_token=token_manager.create_access_token(subject=user.id, additional_claims=claims),
            refresh_token=token_manager.create_refresh_token(subject=user.id),
            role=user.role,
            user_id=user.id,
            profile=profile,
        )

    def refresh(self, refresh_token: str) -> TokenOut:
        payload = token_manager.decode_token(refresh_token, expected_type="refresh")
        user = self.db.get(User, payload["sub"])
        if not user or not user.is_active:
            raise AuthenticationError("Account is not active")
        claims = self.token_claims(user, self.resolve_profile(user))
        return TokenOut(
            access_token=token_manager.refresh_access_token(refresh_token, additional_claims=claims)
        )

    def change_password(self, principal: Principal, old_password: str, new_password: str) -> None:
        user = self.db.get(User, principal.user_id)
        if not user:
            raise NotFoundError("User not found")
        if not password_manager.verify_password(old_password, user.password_hash):
            raise AuthenticationError("Current password is incorrect")

        strength = password_manager.validate_password_strength(new_password)
        if not strength["valid"]:
            raise ValidationError("; ".join(strength["feedback"]))
        if old_password == new_password:
            raise ValidationError("New password must be different from the current password")

        user.password_hash = password_manager.hash_password(new_password)
        user.password_changed = True
        self.db.commit()
        logger.info(f"Password changed for user {user.id}")

    def me(self, principal: Principal) -> ProfileOut:
        user = self.db.get(User, principal.user_id)
        if not user:
            raise NotFoundError("User not found")
        return self.resolve_profile(user)
