# app/models/user.py - Login identity shared by students, teachers and staff
from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, DateTime, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, utcnow, new_id
import enum


class UserRole(str, enum.Enum):
    """System-wide user roles"""
    STUDENT = "Student"
    TEACHER = "Teacher"
    PRINCIPAL = "Principal"
    DEPUTY_PRINCIPAL = "DeputyPrincipal"
    SECRETARY = "Secretary"
    BURSAR = "Bursar"
    LIBRARIAN = "Librarian"
    STAFF = "Staff"


STAFF_ROLES = [
    UserRole.PRINCIPAL,
    UserRole.DEPUTY_PRINCIPAL,
    UserRole.SECRETARY,
    UserRole.BURSAR,
    UserRole.LIBRARIAN,
    UserRole.STAFF,
]


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    phone_number: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    password_changed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_login: Mapped[datetime | None] = mapped_column(DateTime)

    created_by: Mapped[str | None] = mapped_column(String(36))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "role IN ('Student','Teacher','Principal','DeputyPrincipal','Secretary','Bursar','Librarian','Staff')",
            name="ck_users_role",
        ),
    )

    @property
    def user_role(self) -> UserRole:
        return UserRole(self.role)

    def __repr__(self):
        return f"<User(id={self.id}, phone='{self.phone_number}', role={self.role})>"
